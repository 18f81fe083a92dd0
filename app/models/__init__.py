# app/models/__init__.py
from app.models.order_models import (
    DeliveryStatus,
    PaymentStatus,
    PdfKind,
    SideEffect,
    WorkType,
    classify_work,
)
