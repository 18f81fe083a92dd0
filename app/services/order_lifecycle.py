# app/services/order_lifecycle.py
import logging
from typing import Awaitable, Callable, Optional

from app.models.order_models import (
    DELIVERY_FLOW,
    PAYMENT_STATUS_RANK,
    DeliveryStatus,
    PaymentStatus,
    SideEffect,
)
from app.schemas.order_schemas import OrderRecord

logger = logging.getLogger(__name__)


# --------------------------
# Transition rules
# --------------------------
def can_mark_paid(order: OrderRecord) -> bool:
    return PAYMENT_STATUS_RANK[order.payment_status] < PAYMENT_STATUS_RANK[PaymentStatus.PAID]


def next_delivery_status(current: DeliveryStatus) -> Optional[DeliveryStatus]:
    """Single forward step from `current`; None once the delivery is terminal."""
    return DELIVERY_FLOW.get(current)


# --------------------------
# At-most-once side effects
# --------------------------
async def run_once(
    repo,
    order: OrderRecord,
    effect: SideEffect,
    action: Callable[[], Awaitable[None]],
    mark_on_failure: bool = False,
) -> bool:
    """
    Perform `action` unless `effect` is already recorded on the order.

    Failures are logged and swallowed. The effect is recorded after a success,
    or after any attempt when `mark_on_failure` is set.
    Returns True when the action ran and succeeded.
    """
    if order.has_effect(effect):
        logger.info("Order %s: %s already done, skipping", order.platform_count, effect.value)
        return False

    succeeded = False
    try:
        await action()
        succeeded = True
    except Exception:
        logger.exception("Order %s: %s failed", order.platform_count, effect.value)

    if succeeded or mark_on_failure:
        try:
            await repo.add_effect(order.id, effect)
            order.completed_effects.append(effect.value)
        except Exception:
            logger.exception("Order %s: could not record %s", order.platform_count, effect.value)
    return succeeded


async def attempt(order: OrderRecord, step: str, action: Callable[[], Awaitable]):
    """Run one isolated pipeline step; returns its result or None when it failed."""
    try:
        return await action()
    except Exception:
        logger.exception("Order %s: step '%s' failed", order.platform_count, step)
        return None
