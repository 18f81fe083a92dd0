# app/routers/__init__.py
from fastapi import APIRouter

from .delivery_router import router as delivery_router
from .documents_router import router as documents_router
from .payments_router import router as payments_router
from .requests_router import router as requests_router
from .stats_router import router as stats_router
from .system_router import router as system_router

router = APIRouter(prefix="/api")

router.include_router(requests_router)
router.include_router(payments_router)
router.include_router(delivery_router)
router.include_router(documents_router)
router.include_router(stats_router)
router.include_router(system_router)

__all__ = [
    "router",
    "delivery_router",
    "documents_router",
    "payments_router",
    "requests_router",
    "stats_router",
    "system_router",
]
