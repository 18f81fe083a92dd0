# app/utils/dependencies.py
from typing import AsyncGenerator

import httpx
from fastapi import Depends

from app.core.firebase import get_bucket, get_firestore
from app.services.email_service import Mailer
from app.services.odoo_client import OdooClient
from app.services.order_repository import OrderRepository
from app.services.payment_service import PaymentProcessor
from app.services.storage_service import DocumentStorage


# -----------------------
# FastAPI dependencies
# -----------------------
async def get_http() -> AsyncGenerator[httpx.AsyncClient, None]:
    """One outbound HTTP client per request, closed with it."""
    async with httpx.AsyncClient() as client:
        yield client


def get_order_repository() -> OrderRepository:
    return OrderRepository(get_firestore())


def get_storage() -> DocumentStorage:
    return DocumentStorage(get_bucket())


def get_mailer() -> Mailer:
    return Mailer()


def get_odoo(http: httpx.AsyncClient = Depends(get_http)) -> OdooClient:
    return OdooClient(http)


def get_payment_processor(
    repo: OrderRepository = Depends(get_order_repository),
    odoo: OdooClient = Depends(get_odoo),
    storage: DocumentStorage = Depends(get_storage),
    mailer: Mailer = Depends(get_mailer),
    http: httpx.AsyncClient = Depends(get_http),
) -> PaymentProcessor:
    return PaymentProcessor(repo, odoo, storage, mailer, http)
