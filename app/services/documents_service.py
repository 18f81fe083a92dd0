# app/services/documents_service.py
import logging
from typing import Tuple

from app.core.config import QUOTATION_REPORT
from app.models.order_models import PdfKind
from app.schemas.order_schemas import OrderRecord, SavePdfResponse
from app.services.odoo_client import OdooClient
from app.services.pdf_service import store_odoo_report_once

logger = logging.getLogger(__name__)


async def _find_order(repo, count: int, email: str, paid_only: bool = False) -> OrderRecord:
    order = await repo.find_by_count(count, email=email)
    if not order:
        raise LookupError("Request not found")
    if paid_only and not order.is_paid:
        raise PermissionError(f"Payment not completed ({order.payment_status.value})")
    if not order.quotation_id:
        raise ValueError("Order has no quotation")
    return order


async def get_paid_quotation_pdf(repo, odoo: OdooClient, count: int, email: str) -> Tuple[bytes, str]:
    """Quotation PDF straight from Odoo, only once the order is paid."""
    order = await _find_order(repo, count, email, paid_only=True)

    session = await odoo.authenticate()
    content = await session.render_report(QUOTATION_REPORT, order.quotation_id)
    return content, f"devis-{count}.pdf"


async def save_quotation_pdf(repo, odoo: OdooClient, storage, count: int, email: str) -> SavePdfResponse:
    order = await _find_order(repo, count, email)

    existing = order.pdf(PdfKind.DEVIS_UNSIGNED)
    if existing:
        return SavePdfResponse(created=False, storage_path=existing.storage_path, signed_url=existing.signed_url)

    session = await odoo.authenticate()
    await store_odoo_report_once(
        repo, storage, session, order, PdfKind.DEVIS_UNSIGNED, QUOTATION_REPORT, order.quotation_id
    )
    stored = order.pdf(PdfKind.DEVIS_UNSIGNED)
    logger.info("Quotation PDF stored for order %s at %s", count, stored.storage_path)
    return SavePdfResponse(created=True, storage_path=stored.storage_path, signed_url=stored.signed_url)
