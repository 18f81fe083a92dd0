# app/models/order_models.py
import enum
from typing import Dict, Iterable, Mapping

# ==================================================
# ORDER STATUSES
# ==================================================
class PaymentStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PENDING = "pending"
    PAID = "paid"


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    RECEIVED = "received"


class WorkType(str, enum.Enum):
    NONE = "none"
    BATTERY = "battery"
    PV = "pv"


class PdfKind(str, enum.Enum):
    DEVIS_UNSIGNED = "devis_unsigned"
    DEVIS_SIGNED = "devis_signed"
    INVOICE = "invoice"
    SUPPLIER_DELIVERY_NOTE = "supplier_delivery_note"


class SideEffect(str, enum.Enum):
    """Externally visible actions performed at most once per order."""
    EMAIL_QUOTATION_SENT = "email_quotation_sent"
    EMAIL_CONFIRMATION_SENT = "email_confirmation_sent"
    EMAIL_FULFILLMENT_SENT = "email_fulfillment_sent"
    EMAIL_SHIPPED_SENT = "email_shipped_sent"
    EMAIL_RECEIVED_SENT = "email_received_sent"


PENDING_PAYMENT_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.PENDING_PAYMENT.value)

# Forward order of each status field; a transition may never go back in this list
PAYMENT_STATUS_RANK = {
    PaymentStatus.PENDING_PAYMENT: 0,
    PaymentStatus.PENDING: 0,
    PaymentStatus.PAID: 1,
}

DELIVERY_FLOW = {
    DeliveryStatus.PENDING: DeliveryStatus.SHIPPED,
    DeliveryStatus.SHIPPED: DeliveryStatus.RECEIVED,
}

DELIVERY_EMAIL_EFFECT = {
    DeliveryStatus.SHIPPED: SideEffect.EMAIL_SHIPPED_SENT,
    DeliveryStatus.RECEIVED: SideEffect.EMAIL_RECEIVED_SENT,
}

# ==================================================
# ODOO PRODUCT CLASSIFICATION TABLE
# ==================================================
BATTERY_PRODUCT_IDS = frozenset({4, 5})
PANEL_PRODUCT_ID = 16
INSTALL_BATTERY_PRODUCT_ID = 26
INSTALL_PV_PRODUCT_ID = 27  # battery + PV installation


def classify_work(lines: Iterable[Mapping]) -> Dict:
    """
    Derive the installation work of an order from its lines
    (`odoo_product_id` / `quantity` pairs).
    """
    battery_count = 0
    panel_count = 0
    product_ids = set()

    for line in lines:
        product_id = int(line["odoo_product_id"])
        quantity = line.get("quantity") or 0
        product_ids.add(product_id)
        if product_id in BATTERY_PRODUCT_IDS:
            battery_count += quantity
        if product_id == PANEL_PRODUCT_ID:
            panel_count += quantity

    if INSTALL_PV_PRODUCT_ID in product_ids:
        work_type = WorkType.PV
    elif INSTALL_BATTERY_PRODUCT_ID in product_ids:
        work_type = WorkType.BATTERY
    else:
        return {"type": WorkType.NONE.value, "battery_count": 0, "panel_count": 0}

    return {
        "type": work_type.value,
        "battery_count": _as_count(battery_count),
        "panel_count": _as_count(panel_count),
    }


def _as_count(value):
    return int(value) if float(value).is_integer() else value


# ==================================================
# SIMULATOR PRICING
# ==================================================
SIMULATOR_BATTERY_AMOUNT = 150
SIMULATOR_PV_BASE_AMOUNT = 300
SIMULATOR_PV_EXTRA_PANEL_AMOUNT = 65


def simulator_amount(installation_type: str, pv_count: int) -> int:
    if installation_type == WorkType.BATTERY.value:
        return SIMULATOR_BATTERY_AMOUNT
    if installation_type == WorkType.PV.value:
        panels = max(1, int(pv_count or 1))
        return SIMULATOR_PV_BASE_AMOUNT + (panels - 1) * SIMULATOR_PV_EXTRA_PANEL_AMOUNT
    return 0
