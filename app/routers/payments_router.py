# app/routers/payments_router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from app.core.security import is_cron_authorized, verify_stripe_event
from app.schemas.order_schemas import PaymentCheckReport, WebhookAck
from app.services.odoo_client import OdooError
from app.services.payment_service import PaymentProcessor
from app.utils.dependencies import get_payment_processor
from app.utils.http_errors import upstream_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])


# POST /api/stripe-webhook
@router.post("/stripe-webhook", response_model=WebhookAck)
async def route_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """
    Stripe payment confirmation. The raw body is verified before anything else;
    once verified the event is always acknowledged unless Odoo is unreachable
    before the order could be marked paid (Stripe then retries).
    """
    payload = await request.body()
    if not stripe_signature:
        logger.warning("Stripe webhook rejected: missing Stripe-Signature header")
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    try:
        event = verify_stripe_event(payload, stripe_signature)
    except ValueError as e:
        logger.warning("Stripe webhook rejected: %s", e)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")
    except RuntimeError as e:
        logger.error("Stripe webhook cannot be verified: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    try:
        outcome = await processor.handle_stripe_event(event)
    except OdooError as e:
        logger.error("Stripe event %s not processed: %s", event.get("id"), e)
        raise upstream_error(e)

    logger.info("Stripe event %s handled: %s", event.get("id"), outcome)
    return WebhookAck(outcome=outcome)


# GET|POST /api/check-odoo-payments
@router.api_route(
    "/check-odoo-payments",
    methods=["GET", "POST"],
    response_model=PaymentCheckReport,
    response_model_exclude_none=True,
)
async def route_check_odoo_payments(
    x_cron_secret: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    if not is_cron_authorized(x_cron_secret, authorization):
        logger.warning("check-odoo-payments unauthorized: missing or invalid cron secret")
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        return await processor.reconcile_pending_payments()
    except Exception as e:
        logger.exception("check-odoo-payments failed")
        raise HTTPException(status_code=500, detail={"message": "Internal error", "error": str(e)})
