# app/services/pdf_service.py
import io
import logging
from xml.sax.saxutils import escape
from datetime import datetime, timezone
from typing import Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.config import PUBLIC_BASE_URL
from app.models.order_models import PdfKind
from app.schemas.order_schemas import OrderRecord, PdfEntry

logger = logging.getLogger(__name__)


# --------------------------
# Storage paths / filenames
# --------------------------
def pdf_filename(kind: PdfKind, order: OrderRecord, record_id: Optional[int] = None) -> str:
    if kind == PdfKind.DEVIS_UNSIGNED:
        return f"devis-unsigned-{record_id or order.quotation_id}.pdf"
    if kind == PdfKind.DEVIS_SIGNED:
        return f"devis-signed-{record_id or order.quotation_id}.pdf"
    if kind == PdfKind.INVOICE:
        return f"facture-{record_id or order.invoice_id}.pdf"
    return f"bon-livraison-{order.platform_count}.pdf"


def pdf_storage_path(kind: PdfKind, order: OrderRecord, record_id: Optional[int] = None) -> str:
    return f"requests/{order.platform_count}/{pdf_filename(kind, order, record_id)}"


def scan_url(order: OrderRecord, token: Optional[str]) -> str:
    url = f"{PUBLIC_BASE_URL}/api/scan?count={order.platform_count}"
    return f"{url}&token={token}" if token else url


# --------------------------
# Store once per kind
# --------------------------
async def store_pdf_once(repo, storage, order: OrderRecord, kind: PdfKind, render, record_id: Optional[int] = None) -> Tuple[bytes, bool]:
    """
    Return the PDF of `kind` for the order, generating and uploading it only when the
    order has none recorded yet. `render` is an async callable producing the bytes.
    Returns (content, created).
    """
    existing = order.pdf(kind)
    if existing:
        logger.info("PDF %s already stored for order %s, reusing %s", kind.value, order.platform_count, existing.storage_path)
        return await storage.download(existing.storage_path), False

    content = await render()
    path, signed_url = await storage.upload(pdf_storage_path(kind, order, record_id), content)
    await repo.set_pdf(order.id, kind, path, signed_url)
    order.pdfs[kind.value] = PdfEntry(storage_path=path, signed_url=signed_url, created_at=datetime.now(timezone.utc))
    return content, True


async def store_odoo_report_once(repo, storage, session, order: OrderRecord, kind: PdfKind, report_name: str, record_id: int) -> Tuple[bytes, bool]:
    async def render():
        return await session.render_report(report_name, record_id)

    return await store_pdf_once(repo, storage, order, kind, render, record_id)


# --------------------------
# Supplier delivery note
# --------------------------
def build_delivery_note(order: OrderRecord, token: Optional[str]) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Bon de livraison {order.platform_count}")
    styles = getSampleStyleSheet()

    client = order.client or {}
    address = order.address or {}
    work = order.work
    url = scan_url(order, token)

    elements = [
        Paragraph(f"Bon de livraison – Commande #{order.platform_count}", styles["Title"]),
        Paragraph(f"Référence : {order.request_number or order.quotation_id or '-'}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("Client", styles["Heading2"]),
        Paragraph(escape(f"{client.get('firstName', '')} {client.get('lastName', '')}".strip() or "-"), styles["Normal"]),
        Paragraph(escape(client.get("phone") or "-"), styles["Normal"]),
        Paragraph(
            escape(f"{address.get('street', '')} {address.get('number', '')}, {address.get('zipcode', '')} {address.get('city', '')}".strip(" ,")),
            styles["Normal"],
        ),
        Spacer(1, 12),
    ]

    rows = [["Travaux", "Batteries", "Panneaux"]]
    if work:
        rows.append([work.type.value, _fmt(work.battery_count), _fmt(work.panel_count)])
    else:
        rows.append(["-", "0", "0"])
    table = Table(rows, colWidths=[180, 120, 120])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("ALIGN", (1, 1), (-1, -1), "CENTER"),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 18))
    elements.append(Paragraph("Suivi de livraison : ouvrir ce lien à l'expédition puis à la réception.", styles["Normal"]))
    elements.append(Paragraph(f'<link href="{escape(url)}">{escape(url)}</link>', styles["Normal"]))

    doc.build(elements)
    return buffer.getvalue()


def _fmt(value) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
