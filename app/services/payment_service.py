# app/services/payment_service.py
import logging
import time
from typing import Dict, List, Optional

import httpx
from starlette.concurrency import run_in_threadpool

from app.core.config import (
    FULFILLMENT_EMAIL,
    INVOICE_POLL_ATTEMPTS,
    INVOICE_POLL_DELAY,
    INVOICE_REPORT,
    ORDER_CONFIRM_DELAY,
    QUOTATION_REPORT,
)
from app.core.security import generate_delivery_token
from app.models.order_models import PaymentStatus, PdfKind, SideEffect
from app.schemas.order_schemas import DeliveryInfo, OrderRecord, PaymentCheckError, PaymentCheckReport
from app.services.email_service import Attachment, confirmation_email, fetch_legal_attachments, fulfillment_email
from app.services.odoo_client import OdooClient, OdooError, OdooSession
from app.services.order_lifecycle import attempt, can_mark_paid, run_once
from app.services.pdf_service import build_delivery_note, pdf_filename, store_odoo_report_once, store_pdf_once
from app.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED_EVENT = "payment_intent.succeeded"

# Outcomes reported back to the webhook / cron callers
IGNORED = "ignored"
TRANSACTION_NOT_FOUND = "transaction_not_found"
TRANSACTION_NOT_DONE = "transaction_not_done"
SALE_ORDER_NOT_FOUND = "sale_order_not_found"
ORDER_NOT_FOUND = "order_not_found"
ALREADY_PAID = "already_paid"
PAID = "paid"
NOT_CONFIRMED = "not_confirmed"
INVOICE_PENDING = "invoice_pending"
INVOICED = "invoiced"


def default_confirm_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=2,
        delay=ORDER_CONFIRM_DELAY,
        predicate=lambda so: bool(so) and so.get("state") == "sale",
    )


def default_invoice_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=INVOICE_POLL_ATTEMPTS,
        delay=INVOICE_POLL_DELAY,
        predicate=lambda invoice: invoice is not None,
    )


class PaymentProcessor:
    """
    Payment side of the order lifecycle: the pending -> paid transition and
    everything that follows it (invoice discovery, documents, delivery, emails).
    """

    def __init__(
        self,
        repo,
        odoo: OdooClient,
        storage,
        mailer,
        http: httpx.AsyncClient,
        confirm_policy: Optional[RetryPolicy] = None,
        invoice_policy: Optional[RetryPolicy] = None,
    ):
        self.repo = repo
        self.odoo = odoo
        self.storage = storage
        self.mailer = mailer
        self.http = http
        self.confirm_policy = confirm_policy or default_confirm_policy()
        self.invoice_policy = invoice_policy or default_invoice_policy()

    # --------------------------
    # Stripe webhook
    # --------------------------
    async def handle_stripe_event(self, event: Dict) -> str:
        """
        Resolve a verified Stripe event to an order and settle it.
        Odoo failures before the order is marked paid propagate to the caller.
        """
        if event.get("type") != PAYMENT_SUCCEEDED_EVENT:
            logger.info("Stripe event %s ignored", event.get("type"))
            return IGNORED

        intent_id = ((event.get("data") or {}).get("object") or {}).get("id")
        if not intent_id:
            logger.warning("Stripe event %s has no payment intent id", event.get("id"))
            return IGNORED

        session = await self.odoo.authenticate()

        transactions = await session.search_read(
            "payment.transaction",
            [["provider_reference", "=", intent_id]],
            ["state", "sale_order_ids"],
            limit=1,
        )
        if not transactions:
            logger.warning("No Odoo transaction for payment intent %s", intent_id)
            return TRANSACTION_NOT_FOUND

        transaction = transactions[0]
        if transaction.get("state") != "done":
            logger.info("Odoo transaction for %s is '%s', not done", intent_id, transaction.get("state"))
            return TRANSACTION_NOT_DONE

        sale_order_ids = transaction.get("sale_order_ids") or []
        if not sale_order_ids:
            logger.warning("Odoo transaction for %s has no sale order", intent_id)
            return SALE_ORDER_NOT_FOUND

        sale_order = await session.read_one("sale.order", sale_order_ids[0], ["x_studio_platform_count"])
        count = (sale_order or {}).get("x_studio_platform_count")
        if not count:
            logger.warning("sale.order %s carries no platform count", sale_order_ids[0])
            return SALE_ORDER_NOT_FOUND

        order = await self.repo.find_by_count(int(count))
        if not order:
            logger.warning("No order with platform count %s", count)
            return ORDER_NOT_FOUND

        return await self.settle(order, session)

    # --------------------------
    # pending -> paid
    # --------------------------
    async def settle(self, order: OrderRecord, session: OdooSession) -> str:
        if not can_mark_paid(order):
            logger.info("Order %s already paid, nothing to do", order.platform_count)
            return ALREADY_PAID

        if not await self.repo.mark_paid(order.id):
            logger.info("Order %s was marked paid concurrently", order.platform_count)
            return ALREADY_PAID

        order.payment_status = PaymentStatus.PAID
        logger.info("Order %s marked paid", order.platform_count)

        try:
            return await self.after_payment(order, session)
        except Exception:
            # the transition is committed; the caller still acknowledges
            logger.exception("Order %s: post-payment processing failed", order.platform_count)
            return PAID

    async def after_payment(self, order: OrderRecord, session: OdooSession) -> str:
        quotation_id = order.quotation_id
        if not quotation_id:
            logger.warning("Order %s has no quotation, skipping invoicing", order.platform_count)
            return PAID

        confirmed = await self.confirm_policy.poll(
            lambda: session.read_one("sale.order", quotation_id, ["state"]),
            label=f"sale.order {quotation_id} confirmation",
        )
        if not confirmed.ok:
            logger.warning("Order %s: sale.order %s not confirmed", order.platform_count, quotation_id)
            return NOT_CONFIRMED

        found = await self.invoice_policy.poll(
            lambda: find_posted_invoice(session, quotation_id),
            label=f"sale.order {quotation_id} invoice",
        )
        if not found.ok:
            logger.warning("Order %s: no posted invoice yet, left for a later run", order.platform_count)
            return INVOICE_PENDING

        invoice_id = found.value["id"]
        if order.invoice_id != invoice_id:
            await attempt(order, "invoice_id", lambda: self.repo.update(order.id, {"invoice_id": invoice_id}))
            order.invoice_id = invoice_id

        await self.fulfil(order, session, invoice_id)
        return INVOICED

    async def fulfil(self, order: OrderRecord, session: OdooSession, invoice_id: int) -> None:
        """Documents, delivery record and emails; every step is independent of the others."""
        invoice = await attempt(
            order,
            "invoice_pdf",
            lambda: store_odoo_report_once(
                self.repo, self.storage, session, order, PdfKind.INVOICE, INVOICE_REPORT, invoice_id
            ),
        )
        signed = await attempt(
            order,
            "signed_quotation_pdf",
            lambda: store_odoo_report_once(
                self.repo, self.storage, session, order, PdfKind.DEVIS_SIGNED, QUOTATION_REPORT, order.quotation_id
            ),
        )

        delivery = await attempt(
            order, "delivery_init", lambda: self.repo.init_delivery(order.id, generate_delivery_token())
        )
        note = None
        if delivery:
            order.delivery = DeliveryInfo.model_validate(delivery)
            token = order.delivery.token

            async def render():
                return await run_in_threadpool(build_delivery_note, order, token)

            note = await attempt(
                order,
                "delivery_note",
                lambda: store_pdf_once(self.repo, self.storage, order, PdfKind.SUPPLIER_DELIVERY_NOTE, render),
            )

        async def send_fulfillment():
            attachments = []
            if note:
                attachments.append(Attachment(pdf_filename(PdfKind.SUPPLIER_DELIVERY_NOTE, order), note[0]))
            subject, body = fulfillment_email(
                order.platform_count,
                order.request_number or str(order.quotation_id),
                f"{order.client.get('firstName', '')} {order.client.get('lastName', '')}".strip(),
                order.work.type.value if order.work else "none",
            )
            await self.mailer.send(FULFILLMENT_EMAIL, subject, body, attachments)

        async def send_confirmation():
            attachments: List[Attachment] = []
            if signed:
                attachments.append(Attachment(pdf_filename(PdfKind.DEVIS_SIGNED, order), signed[0]))
            if invoice:
                attachments.append(Attachment(pdf_filename(PdfKind.INVOICE, order, invoice_id), invoice[0]))
            attachments.extend(await fetch_legal_attachments(self.http))
            subject, body = confirmation_email(
                order.client.get("firstName", ""), order.request_number or str(order.quotation_id)
            )
            await self.mailer.send(order.client_email, subject, body, attachments)

        await run_once(self.repo, order, SideEffect.EMAIL_FULFILLMENT_SENT, send_fulfillment)
        await run_once(self.repo, order, SideEffect.EMAIL_CONFIRMATION_SENT, send_confirmation)

    # --------------------------
    # Cron reconciliation
    # --------------------------
    async def reconcile_pending_payments(self) -> PaymentCheckReport:
        started = time.monotonic()
        orders = await self.repo.list_pending_payments()
        logger.info("Pending payments found: %d", len(orders))

        session: Optional[OdooSession] = None
        checked = 0
        updated = 0
        errors: List[PaymentCheckError] = []

        for order in orders:
            if not order.quotation_id:
                logger.info("Skip order %s: no quotation", order.id)
                continue

            checked += 1
            try:
                if session is None:
                    session = await self.odoo.authenticate()
                payment_state = await invoice_payment_state(session, order.quotation_id)
            except OdooError as e:
                logger.error("Odoo check failed for order %s (sale.order %s): %s", order.id, order.quotation_id, e)
                errors.append(PaymentCheckError(doc_id=order.id, quotation_id=order.quotation_id, step="odoo", error=str(e)))
                continue

            if payment_state != "paid":
                logger.debug("sale.order %s payment state: %s", order.quotation_id, payment_state)
                continue

            try:
                outcome = await self.settle(order, session)
            except Exception as e:
                logger.exception("Could not mark order %s paid", order.id)
                errors.append(PaymentCheckError(doc_id=order.id, quotation_id=order.quotation_id, step="update", error=str(e)))
                continue
            if outcome != ALREADY_PAID:
                updated += 1

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Payment check done in %dms: pending=%d checked=%d updated=%d", duration_ms, len(orders), checked, updated)
        return PaymentCheckReport(
            pending=len(orders),
            checked=checked,
            updated=updated,
            duration_ms=duration_ms,
            errors=errors or None,
        )


# --------------------------
# Odoo lookups
# --------------------------
async def find_posted_invoice(session: OdooSession, sale_order_id: int) -> Optional[Dict]:
    sale_order = await session.read_one("sale.order", sale_order_id, ["invoice_ids"])
    invoice_ids = (sale_order or {}).get("invoice_ids") or []
    if not invoice_ids:
        return None
    for invoice in await session.read("account.move", invoice_ids, ["state", "name", "payment_state"]):
        if invoice.get("state") == "posted":
            return invoice
    return None


async def invoice_payment_state(session: OdooSession, sale_order_id: int) -> Optional[str]:
    """payment_state of the first invoice of the sale order; None when it has no invoice."""
    sale_order = await session.read_one("sale.order", sale_order_id, ["invoice_ids"])
    invoice_ids = (sale_order or {}).get("invoice_ids") or []
    if not invoice_ids:
        return None
    invoice = await session.read_one("account.move", invoice_ids[0], ["payment_state"])
    return (invoice or {}).get("payment_state")
