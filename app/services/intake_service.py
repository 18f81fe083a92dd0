# app/services/intake_service.py
import logging
from typing import Dict, List

from app.core.config import ODOO_TEST_PRODUCT_ID, QUOTATION_REPORT
from app.models.order_models import PaymentStatus, PdfKind, SideEffect, classify_work, simulator_amount
from app.schemas.order_schemas import (
    CreateLeadRequest,
    CreateLeadResponse,
    OrderRecord,
    SimulatorRequest,
    SimulatorResponse,
)
from app.services.email_service import Attachment, quotation_email
from app.services.order_lifecycle import run_once
from app.services.pdf_service import pdf_filename, store_odoo_report_once

logger = logging.getLogger(__name__)

LEAD_SOURCE = "simulateur_ui"
SIMULATOR_SOURCE = "simulator"

SALE_ORDER_NOTE = (
    "Le client reconnaît avoir lu, compris et accepté l'intégralité des Conditions Générales de Vente "
    "applicables. Les informations, estimations, projections et résultats fournis par le simulateur sont "
    "strictement indicatifs. Ils ne constituent ni une offre commerciale, ni une proposition contractuelle, "
    "ni un engagement, ni une garantie de résultat ou de performance. Seule l'acquisition effective d'un "
    "produit ou service Wenergy constitue un engagement contractuel entre les parties."
)


def _order_lines(data: CreateLeadRequest) -> List[Dict]:
    if data.test:
        return [{"odoo_product_id": ODOO_TEST_PRODUCT_ID, "quantity": 1, "unit_price_ht": 0.5}]
    return [line.model_dump() for line in data.order_products]


def _compact(values: Dict) -> Dict:
    return {k: v for k, v in values.items() if v is not None}


# -------------------------------------------------------------------------
# Lead intake: Odoo partner / opportunity / quotation + Firestore order
# -------------------------------------------------------------------------
async def create_lead(data: CreateLeadRequest, repo, odoo, storage, mailer) -> CreateLeadResponse:
    """
    Create the Odoo records for a simulator lead and persist the matching order.

    Lines are already validated by the request schema, so nothing below runs for
    an invalid request. Odoo failures propagate as OdooError before any order is
    written; the reserved count is then simply skipped.
    """
    client = data.client
    simulation = data.simulation
    lines = _order_lines(data)

    count = await repo.reserve_count()
    session = await odoo.authenticate()

    partner_id = await session.create("res.partner", _compact({
        "name": client.company or client.full_name,
        "email": client.email,
        "phone": client.phone,
        "street": client.address,
        "zip": client.zip,
        "city": client.city,
        "type": "contact",
        "customer_rank": 1,
        "vat": client.vat or None,
    }))

    lead_id = await session.create("crm.lead", _compact({
        "name": f"Demande simulateur – {client.full_name}",
        "contact_name": client.full_name,
        "email_from": client.email,
        "phone": client.phone,
        "street": client.address,
        "zip": client.zip,
        "city": client.city,
        "type": "opportunity",
        "partner_id": partner_id,
        "partner_name": client.company or None,
        "x_studio_consumption": simulation.consumption or 0,
        "x_studio_capacity": simulation.total_capacity or 0,
        "x_studio_invest_ttc": simulation.invest_ttc or 0,
        "x_studio_preference_de_livraison": client.delivery_pref or "",
        "description": (
            f"TVA : {client.vat or ''}\n\n"
            f"Simulation :\n{simulation.summary_html or ''}\n\n"
            f"Payback :\n{simulation.payback_text or ''}"
        ),
    }))

    quotation_id = await session.create("sale.order", {
        "partner_id": partner_id,
        "partner_invoice_id": partner_id,
        "partner_shipping_id": partner_id,
        "pricelist_id": 1,
        "payment_term_id": False,
        "team_id": 1,
        "x_studio_preference_de_livraison": client.delivery_pref or "",
        "x_studio_platform_count": count,
        "note": SALE_ORDER_NOTE,
    })

    for line in lines:
        await session.create("sale.order.line", {
            "order_id": quotation_id,
            "product_id": line["odoo_product_id"],
            "product_uom_qty": line["quantity"],
            "price_unit": line["unit_price_ht"],
        })

    portal_url = await session.get_portal_url(quotation_id)

    request_number = None
    try:
        record = await session.read_one("sale.order", quotation_id, ["name"])
        if record and record.get("name"):
            request_number = str(record["name"])
    except Exception as e:
        logger.warning("sale.order %s name not read: %s", quotation_id, e)

    order = await repo.create({
        "platform_count": count,
        "quotation_id": quotation_id,
        "request_number": request_number,
        "source": LEAD_SOURCE,
        "payment_status": PaymentStatus.PENDING.value,
        "client": {
            "firstName": client.firstname,
            "lastName": client.lastname,
            "phone": client.phone or "",
            "email": client.email,
        },
        "address": {
            "street": client.street or "",
            "number": client.street_number or "",
            "city": client.city or "",
            "zipcode": client.zip or "",
        },
        "work": classify_work(lines),
    })
    logger.info("Order %s created (quotation %s, lead %s)", count, quotation_id, lead_id)

    await _send_unsigned_quotation(order, session, repo, storage, mailer, portal_url)

    return CreateLeadResponse(
        platform_count=count,
        lead_id=lead_id,
        partner_id=partner_id,
        quotation_id=quotation_id,
        portal_url=portal_url,
    )


async def _send_unsigned_quotation(order: OrderRecord, session, repo, storage, mailer, portal_url) -> None:
    try:
        pdf, _ = await store_odoo_report_once(
            repo, storage, session, order, PdfKind.DEVIS_UNSIGNED, QUOTATION_REPORT, order.quotation_id
        )
    except Exception:
        logger.exception("Order %s: unsigned quotation PDF not stored", order.platform_count)
        return

    async def send():
        subject, body = quotation_email(
            order.client.get("firstName", ""), order.request_number or str(order.quotation_id), portal_url
        )
        attachment = Attachment(pdf_filename(PdfKind.DEVIS_UNSIGNED, order), pdf)
        await mailer.send(order.client_email, subject, body, [attachment])

    await run_once(repo, order, SideEffect.EMAIL_QUOTATION_SENT, send)


# -------------------------------------------------------------------------
# Simulator intake: Firestore only
# -------------------------------------------------------------------------
async def create_simulator_request(data: SimulatorRequest, repo) -> SimulatorResponse:
    count = await repo.reserve_count()
    installation_type = data.installation_type.value

    order = await repo.create({
        "platform_count": count,
        "source": SIMULATOR_SOURCE,
        "payment_status": PaymentStatus.PENDING_PAYMENT.value,
        "client": {
            "firstName": data.firstname,
            "lastName": data.lastname,
            "phone": data.phone or "",
        },
        "address": {
            "street": data.street or "",
            "number": data.number or "",
            "zipcode": data.zipcode,
            "city": data.city,
        },
        "work": {
            "type": installation_type,
            "battery_count": 0,
            "panel_count": data.pv_count if installation_type == "pv" else 0,
            "amount": simulator_amount(installation_type, data.pv_count),
        },
    })
    logger.info("Simulator request %s stored as %s", count, order.id)
    return SimulatorResponse(request_id=order.id, platform_count=count)
