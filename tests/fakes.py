# tests/fakes.py
import copy
import hashlib
import hmac
import json
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from app.models.order_models import DELIVERY_FLOW, PENDING_PAYMENT_STATUSES
from app.schemas.order_schemas import OrderRecord
from app.services.odoo_client import OdooError

WEBHOOK_SECRET = "whsec_test"
CRON_SECRET = "cron-secret"
FULFILLMENT_EMAIL = "ops@wenergy.test"


def _now():
    return datetime.now(timezone.utc)


# --------------------------
# Firestore orders
# --------------------------
class FakeOrderRepository:
    def __init__(self):
        self.counter = 0
        self.docs: Dict[str, dict] = {}
        self.calls: List[str] = []

    def seed(self, **data) -> str:
        doc_id = f"doc{len(self.docs) + 1}"
        self.docs[doc_id] = {"pdfs": {}, "completed_effects": [], "client": {}, "address": {}, **data}
        self.counter = max(self.counter, data.get("platform_count", 0))
        return doc_id

    def snapshot(self, doc_id: str) -> dict:
        return copy.deepcopy(self.docs[doc_id])

    async def reserve_count(self) -> int:
        self.calls.append("reserve_count")
        self.counter += 1
        return self.counter

    async def get(self, doc_id: str) -> Optional[OrderRecord]:
        data = self.docs.get(doc_id)
        if data is None:
            return None
        return OrderRecord.model_validate({**copy.deepcopy(data), "id": doc_id})

    async def find_by_count(self, count: int, email: Optional[str] = None) -> Optional[OrderRecord]:
        self.calls.append("find_by_count")
        for doc_id, data in self.docs.items():
            if data.get("platform_count") != count:
                continue
            if email is not None and (data.get("client") or {}).get("email") != email:
                continue
            return await self.get(doc_id)
        return None

    async def list_pending_payments(self) -> List[OrderRecord]:
        self.calls.append("list_pending_payments")
        return [
            await self.get(doc_id)
            for doc_id, data in self.docs.items()
            if data.get("payment_status") in PENDING_PAYMENT_STATUSES
        ]

    async def create(self, data: dict) -> OrderRecord:
        self.calls.append("create")
        doc_id = f"doc{len(self.docs) + 1}"
        self.docs[doc_id] = {"created_at": _now(), "pdfs": {}, "completed_effects": [], **copy.deepcopy(data)}
        return await self.get(doc_id)

    async def update(self, doc_id: str, fields: dict) -> None:
        self.calls.append("update")
        data = self.docs[doc_id]
        for key, value in fields.items():
            target = data
            parts = key.split(".")
            for part in parts[:-1]:
                target = target.setdefault(part, {})
            target[parts[-1]] = value

    async def set_pdf(self, doc_id, kind, storage_path, signed_url) -> None:
        await self.update(
            doc_id, {f"pdfs.{kind.value}": {"storage_path": storage_path, "signed_url": signed_url, "created_at": _now()}}
        )

    async def add_effect(self, doc_id, effect) -> None:
        effects = self.docs[doc_id].setdefault("completed_effects", [])
        if effect.value not in effects:
            effects.append(effect.value)

    async def mark_paid(self, doc_id: str) -> bool:
        data = self.docs.get(doc_id)
        if data is None:
            raise LookupError(doc_id)
        if data.get("payment_status") == "paid":
            return False
        data["payment_status"] = "paid"
        data["paid_at"] = _now()
        return True

    async def init_delivery(self, doc_id: str, token: str) -> dict:
        data = self.docs[doc_id]
        if not data.get("delivery"):
            data["delivery"] = {"status": "pending", "token": token, "created_at": _now()}
        return copy.deepcopy(data["delivery"])

    async def advance_delivery(self, doc_id: str, current) -> bool:
        target = DELIVERY_FLOW.get(current)
        delivery = self.docs[doc_id].get("delivery") or {}
        if target is None or delivery.get("status") != current.value:
            return False
        delivery["status"] = target.value
        delivery[f"{target.value}_at"] = _now()
        return True


# --------------------------
# Odoo
# --------------------------
class FakeOdooSession:
    def __init__(self):
        self.records: Dict[str, Dict[int, dict]] = defaultdict(dict)
        self.calls: List[tuple] = []
        self.fail_on: Dict[tuple, Exception] = {}
        self.next_id = 100

    def put(self, model: str, record_id: int, **values) -> None:
        self.records[model][record_id] = values

    def _call(self, model: str, method: str) -> None:
        self.calls.append((model, method))
        error = self.fail_on.get((model, method))
        if error:
            raise error

    def _project(self, record_id: int, record: dict, fields: List[str]) -> dict:
        return {**{f: record.get(f, False) for f in fields if f != "id"}, "id": record_id}

    async def create(self, model: str, values: dict) -> int:
        self._call(model, "create")
        self.next_id += 1
        record = dict(values)
        if model == "sale.order":
            record.setdefault("name", f"S{self.next_id:05d}")
        self.records[model][self.next_id] = record
        return self.next_id

    async def read(self, model: str, ids: List[int], fields: List[str]) -> List[dict]:
        self._call(model, "read")
        return [self._project(i, self.records[model][i], fields) for i in ids if i in self.records[model]]

    async def read_one(self, model: str, record_id: int, fields: List[str]) -> Optional[dict]:
        records = await self.read(model, [record_id], fields)
        return records[0] if records else None

    async def write(self, model: str, ids: List[int], values: dict) -> bool:
        self._call(model, "write")
        for i in ids:
            self.records[model][i].update(values)
        return True

    async def search_read(self, model: str, domain: list, fields: List[str], limit: Optional[int] = None) -> List[dict]:
        self._call(model, "search_read")
        found = [
            self._project(i, record, fields)
            for i, record in self.records[model].items()
            if all(record.get(name) == value for name, _, value in domain)
        ]
        return found[:limit] if limit else found

    async def get_portal_url(self, order_id: int) -> str:
        self._call("sale.order", "get_portal_url")
        return f"https://odoo.test/my/orders/{order_id}?access_token=abc"

    async def render_report(self, report_name: str, record_id: int) -> bytes:
        self._call(report_name, "render")
        return f"%PDF-1.4 {report_name}/{record_id}".encode()


class FakeOdoo:
    db = "wenergy-test"
    login = "bot@wenergy.test"

    def __init__(self, session: FakeOdooSession):
        self.session = session
        self.auth_count = 0
        self.error: Optional[OdooError] = None

    async def authenticate(self) -> FakeOdooSession:
        self.auth_count += 1
        if self.error:
            raise self.error
        return self.session


# --------------------------
# Storage / email / clock
# --------------------------
class FakeStorage:
    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.uploads: List[str] = []

    async def upload(self, path: str, content: bytes, content_type: str = "application/pdf"):
        self.blobs[path] = content
        self.uploads.append(path)
        return path, f"https://storage.test/{path}?sig=1"

    async def download(self, path: str) -> bytes:
        return self.blobs[path]


@dataclass
class SentEmail:
    to: str
    subject: str
    body: str
    attachments: list = field(default_factory=list)

    @property
    def filenames(self) -> List[str]:
        return [a.filename for a in self.attachments]


class FakeMailer:
    def __init__(self):
        self.sent: List[SentEmail] = []
        self.attempts = 0
        self.fail_all = False
        self.fail_for = set()

    async def send(self, to, subject, body_html, attachments=()):
        self.attempts += 1
        if self.fail_all or to in self.fail_for:
            raise RuntimeError("Resend unavailable")
        self.sent.append(SentEmail(to, subject, body_html, list(attachments)))


class FakeClock:
    def __init__(self):
        self.sleeps: List[float] = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)


# --------------------------
# Stripe
# --------------------------
def stripe_signature(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{ts}.{payload.decode()}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def payment_event(intent_id: str = "pi_123", event_type: str = "payment_intent.succeeded") -> bytes:
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": {"id": intent_id}}}).encode()
