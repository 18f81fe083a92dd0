from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from typing_extensions import Annotated

from app.models.order_models import DeliveryStatus, PaymentStatus, PdfKind, WorkType

# Reusable constrained types for order lines
ProductRef = Annotated[int, Field(gt=0)]
PositiveQuantity = Annotated[float, Field(gt=0)]
NonNegativePrice = Annotated[float, Field(ge=0)]
NonEmptyStr = Annotated[str, Field(min_length=1)]


# =====================================================
# 🔹 Intake (create-lead)
# =====================================================
class ClientInfo(BaseModel):
    firstname: NonEmptyStr
    lastname: NonEmptyStr
    email: EmailStr
    phone: Optional[str] = ""
    company: Optional[str] = None
    vat: Optional[str] = None
    address: Optional[str] = ""
    street: Optional[str] = ""
    street_number: Optional[str] = ""
    zip: Optional[str] = ""
    city: Optional[str] = ""
    delivery_pref: Optional[str] = ""

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"


class SimulationInfo(BaseModel):
    installation_type: Optional[str] = None
    consumption: Optional[float] = None
    total_capacity: Optional[float] = None
    invest_ttc: Optional[float] = None
    summary_html: Optional[str] = ""
    payback_text: Optional[str] = ""

    model_config = {"extra": "allow"}


class OrderProductLine(BaseModel):
    odoo_product_id: ProductRef
    quantity: PositiveQuantity
    unit_price_ht: NonNegativePrice


class CreateLeadRequest(BaseModel):
    client: ClientInfo
    simulation: SimulationInfo
    order_products: List[OrderProductLine]
    test: bool = False

    @model_validator(mode="after")
    def check_lines(self):
        if not self.test and not self.order_products:
            raise ValueError("order_products must contain at least one line")
        return self


class CreateLeadResponse(BaseModel):
    status: str = "success"
    platform_count: int
    lead_id: int
    partner_id: int
    quotation_id: int
    portal_url: Optional[str] = None


# =====================================================
# 🔹 Intake (simulator)
# =====================================================
class SimulatorRequest(BaseModel):
    firstname: NonEmptyStr
    lastname: NonEmptyStr
    zipcode: NonEmptyStr
    city: NonEmptyStr
    installation_type: WorkType
    phone: Optional[str] = ""
    street: Optional[str] = ""
    number: Optional[str] = ""
    pv_count: Annotated[int, Field(ge=0)] = 0


class SimulatorResponse(BaseModel):
    status: str = "ok"
    request_id: str
    platform_count: int


# =====================================================
# 🔹 Order record (Firestore `requests` document)
# =====================================================
class PdfEntry(BaseModel):
    storage_path: str
    signed_url: Optional[str] = None
    created_at: Optional[datetime] = None


class DeliveryInfo(BaseModel):
    status: DeliveryStatus
    token: Optional[str] = None
    created_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    received_at: Optional[datetime] = None


class WorkInfo(BaseModel):
    type: WorkType
    battery_count: float = 0
    panel_count: float = 0
    amount: Optional[float] = None


class OrderRecord(BaseModel):
    id: str
    platform_count: int
    payment_status: PaymentStatus
    quotation_id: Optional[int] = None
    request_number: Optional[str] = None
    invoice_id: Optional[int] = None
    source: Optional[str] = None
    client: Dict[str, Any] = {}
    address: Dict[str, Any] = {}
    work: Optional[WorkInfo] = None
    delivery: Optional[DeliveryInfo] = None
    pdfs: Dict[str, PdfEntry] = {}
    completed_effects: List[str] = []
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    model_config = {"extra": "allow"}

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def client_email(self) -> Optional[str]:
        return self.client.get("email") or None

    def has_effect(self, effect) -> bool:
        return getattr(effect, "value", effect) in self.completed_effects

    def pdf(self, kind: PdfKind) -> Optional[PdfEntry]:
        return self.pdfs.get(kind.value)


# =====================================================
# 🔹 Lifecycle responses
# =====================================================
class WebhookAck(BaseModel):
    received: bool = True
    outcome: Optional[str] = None


class PaymentCheckError(BaseModel):
    doc_id: str
    quotation_id: Optional[int] = None
    step: str = "odoo"
    error: str


class PaymentCheckReport(BaseModel):
    ok: bool = True
    pending: int
    checked: int
    updated: int
    duration_ms: int
    errors: Optional[List[PaymentCheckError]] = None


class SavePdfResponse(BaseModel):
    ok: bool = True
    created: bool
    storage_path: str
    signed_url: Optional[str] = None
