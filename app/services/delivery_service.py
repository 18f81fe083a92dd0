# app/services/delivery_service.py
import logging
from dataclasses import dataclass
from typing import Optional

from app.core import config
from app.core.security import delivery_token_matches
from app.models.order_models import DELIVERY_EMAIL_EFFECT, DeliveryStatus
from app.schemas.order_schemas import OrderRecord
from app.services.email_service import received_email, shipped_email
from app.services.order_lifecycle import next_delivery_status, run_once

logger = logging.getLogger(__name__)

SHIPPED = "shipped"
RECEIVED = "received"
ALREADY_PROCESSED = "already_processed"

DELIVERY_TEMPLATES = {
    DeliveryStatus.SHIPPED: shipped_email,
    DeliveryStatus.RECEIVED: received_email,
}


@dataclass
class ScanResult:
    outcome: str
    order: OrderRecord
    status: DeliveryStatus


class DeliveryNotReady(Exception):
    """The order has no delivery record yet (not invoiced)."""


async def process_scan(
    repo,
    mailer,
    count: int,
    token: Optional[str] = None,
    require_token: Optional[bool] = None,
) -> ScanResult:
    """
    Apply the single forward delivery transition for the order behind `count`.

    Raises LookupError for an unknown order, PermissionError for a bad token and
    DeliveryNotReady while the order has no delivery record.
    """
    if require_token is None:
        require_token = config.SCAN_REQUIRE_TOKEN

    order = await repo.find_by_count(count)
    if not order:
        raise LookupError(f"Order {count} not found")

    delivery = order.delivery
    if delivery is None:
        raise DeliveryNotReady(f"Order {count} has no delivery yet")

    if require_token and not delivery_token_matches(delivery.token, token):
        logger.warning("Scan refused for order %s: invalid delivery token", count)
        raise PermissionError("Invalid delivery token")

    current = delivery.status
    target = next_delivery_status(current)
    if target is None:
        logger.info("Order %s already %s, scan ignored", count, current.value)
        return ScanResult(ALREADY_PROCESSED, order, current)

    if not await repo.advance_delivery(order.id, current):
        # another scan moved it first; report its state without mutating
        fresh = await repo.get(order.id) or order
        status = fresh.delivery.status if fresh.delivery else current
        logger.info("Order %s delivery moved concurrently to %s", count, status.value)
        return ScanResult(ALREADY_PROCESSED, fresh, status)

    delivery.status = target
    logger.info("Order %s delivery %s -> %s", count, current.value, target.value)

    await _notify(repo, mailer, order, target)
    return ScanResult(target.value, order, target)


async def _notify(repo, mailer, order: OrderRecord, status: DeliveryStatus) -> None:
    async def send():
        subject, body = DELIVERY_TEMPLATES[status](
            order.client.get("firstName", ""), order.request_number or str(order.platform_count)
        )
        await mailer.send(order.client_email, subject, body)

    # recorded even when the send failed, so a repeated scan never re-sends
    await run_once(repo, order, DELIVERY_EMAIL_EFFECT[status], send, mark_on_failure=True)
