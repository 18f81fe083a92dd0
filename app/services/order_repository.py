# app/services/order_repository.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore import FieldFilter

from app.core.config import COUNTER_COLLECTION, COUNTER_DOCUMENT, COUNTER_FIELD, REQUESTS_COLLECTION
from app.models.order_models import (
    DELIVERY_FLOW,
    PENDING_PAYMENT_STATUSES,
    DeliveryStatus,
    PaymentStatus,
    PdfKind,
)
from app.schemas.order_schemas import OrderRecord

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_record(snap) -> OrderRecord:
    return OrderRecord.model_validate({**(snap.to_dict() or {}), "id": snap.id})


class OrderRepository:
    """Order records in the `requests` collection plus the monotonic counter document."""

    def __init__(self, db):
        self.db = db
        self.collection = db.collection(REQUESTS_COLLECTION)
        self.counter_ref = db.collection(COUNTER_COLLECTION).document(COUNTER_DOCUMENT)

    # --------------------------
    # Counter
    # --------------------------
    async def reserve_count(self) -> int:
        counter_ref = self.counter_ref

        @firestore.async_transactional
        async def _reserve(transaction) -> int:
            snap = await counter_ref.get(transaction=transaction)
            current = 0
            if snap.exists:
                value = (snap.to_dict() or {}).get(COUNTER_FIELD)
                if isinstance(value, int):
                    current = value
            count = current + 1
            transaction.set(counter_ref, {COUNTER_FIELD: count}, merge=True)
            return count

        count = await _reserve(self.db.transaction())
        logger.info("Count reserved: %s", count)
        return count

    # --------------------------
    # Reads
    # --------------------------
    async def get(self, doc_id: str) -> Optional[OrderRecord]:
        snap = await self.collection.document(doc_id).get()
        return _to_record(snap) if snap.exists else None

    async def find_by_count(self, count: int, email: Optional[str] = None) -> Optional[OrderRecord]:
        query = self.collection.where(filter=FieldFilter("platform_count", "==", int(count)))
        if email is not None:
            query = query.where(filter=FieldFilter("client.email", "==", email))
        async for snap in query.limit(1).stream():
            return _to_record(snap)
        return None

    async def list_pending_payments(self) -> List[OrderRecord]:
        query = self.collection.where(filter=FieldFilter("payment_status", "in", list(PENDING_PAYMENT_STATUSES)))
        return [_to_record(snap) async for snap in query.stream()]

    # --------------------------
    # Writes
    # --------------------------
    async def create(self, data: Dict[str, Any]) -> OrderRecord:
        ref = self.collection.document()
        payload = {"created_at": _now(), "pdfs": {}, "completed_effects": [], **data}
        await ref.set(payload)
        return OrderRecord.model_validate({**payload, "id": ref.id})

    async def update(self, doc_id: str, fields: Dict[str, Any]) -> None:
        await self.collection.document(doc_id).update({**fields, "updated_at": _now()})

    async def set_pdf(self, doc_id: str, kind: PdfKind, storage_path: str, signed_url: Optional[str]) -> None:
        await self.update(
            doc_id,
            {f"pdfs.{kind.value}": {"storage_path": storage_path, "signed_url": signed_url, "created_at": _now()}},
        )

    async def add_effect(self, doc_id: str, effect) -> None:
        await self.update(doc_id, {"completed_effects": firestore.ArrayUnion([getattr(effect, "value", effect)])})

    # --------------------------
    # Guarded transitions (compare-and-set per order)
    # --------------------------
    async def mark_paid(self, doc_id: str) -> bool:
        """Move the order to `paid`; False when it already was."""
        ref = self.collection.document(doc_id)

        @firestore.async_transactional
        async def _mark(transaction) -> bool:
            snap = await ref.get(transaction=transaction)
            if not snap.exists:
                raise LookupError(f"Order {doc_id} not found")
            if (snap.to_dict() or {}).get("payment_status") == PaymentStatus.PAID.value:
                return False
            now = _now()
            transaction.update(ref, {"payment_status": PaymentStatus.PAID.value, "paid_at": now, "updated_at": now})
            return True

        return await _mark(self.db.transaction())

    async def init_delivery(self, doc_id: str, token: str) -> Dict[str, Any]:
        """Create the delivery sub-record unless present; returns the stored one."""
        ref = self.collection.document(doc_id)

        @firestore.async_transactional
        async def _init(transaction) -> Dict[str, Any]:
            snap = await ref.get(transaction=transaction)
            existing = (snap.to_dict() or {}).get("delivery")
            if existing:
                return existing
            delivery = {"status": DeliveryStatus.PENDING.value, "token": token, "created_at": _now()}
            transaction.update(ref, {"delivery": delivery, "updated_at": _now()})
            return delivery

        return await _init(self.db.transaction())

    async def advance_delivery(self, doc_id: str, current: DeliveryStatus) -> bool:
        """Apply the single forward step from `current`; False when the order moved meanwhile."""
        target = DELIVERY_FLOW.get(current)
        if target is None:
            return False
        ref = self.collection.document(doc_id)

        @firestore.async_transactional
        async def _advance(transaction) -> bool:
            snap = await ref.get(transaction=transaction)
            delivery = (snap.to_dict() or {}).get("delivery") or {}
            if delivery.get("status") != current.value:
                return False
            now = _now()
            transaction.update(
                ref,
                {"delivery.status": target.value, f"delivery.{target.value}_at": now, "updated_at": now},
            )
            return True

        return await _advance(self.db.transaction())
