# tests/test_stripe_webhook.py
import httpx
import pytest

from app.services import email_service
from app.services.odoo_client import OdooAuthError
from tests.fakes import FULFILLMENT_EMAIL, WEBHOOK_SECRET, payment_event, stripe_signature

QUOTATION_ID = 700
INVOICE_ID = 900


@pytest.fixture
def order_id(repo, odoo_session):
    doc_id = repo.seed(
        platform_count=1,
        quotation_id=QUOTATION_ID,
        request_number="S00700",
        payment_status="pending",
        client={"firstName": "Jane", "lastName": "Doe", "email": "jane@example.com", "phone": ""},
        address={"street": "Rue Haute", "number": "1", "zipcode": "1000", "city": "Bruxelles"},
        work={"type": "pv", "battery_count": 1, "panel_count": 4},
        pdfs={
            "devis_unsigned": {
                "storage_path": f"requests/1/devis-unsigned-{QUOTATION_ID}.pdf",
                "signed_url": "https://storage.test/unsigned",
            }
        },
        completed_effects=["email_quotation_sent"],
    )
    odoo_session.put("payment.transaction", 50, provider_reference="pi_123", state="done", sale_order_ids=[QUOTATION_ID])
    odoo_session.put("sale.order", QUOTATION_ID, x_studio_platform_count=1, state="sale", invoice_ids=[INVOICE_ID])
    odoo_session.put("account.move", INVOICE_ID, state="posted", payment_state="paid", name="INV/2026/0001")
    return doc_id


def post_event(client, payload, secret=WEBHOOK_SECRET):
    return client.post(
        "/api/stripe-webhook",
        content=payload,
        headers={"Stripe-Signature": stripe_signature(payload, secret), "Content-Type": "application/json"},
    )


def test_missing_signature_rejected(client, repo, order_id):
    resp = client.post("/api/stripe-webhook", content=payment_event())

    assert resp.status_code == 400
    assert repo.calls == []


def test_invalid_signature_rejected_without_store_access(client, repo, odoo, order_id):
    resp = post_event(client, payment_event(), secret="whsec_wrong")

    assert resp.status_code == 400
    assert repo.calls == []
    assert odoo.auth_count == 0
    assert repo.docs[order_id]["payment_status"] == "pending"


def test_other_events_are_acknowledged(client, repo, odoo, order_id):
    resp = post_event(client, payment_event(event_type="charge.refunded"))

    assert resp.status_code == 200
    assert resp.json() == {"received": True, "outcome": "ignored"}
    assert odoo.auth_count == 0


def test_transaction_not_done_leaves_order_untouched(client, repo, odoo_session, mailer, order_id):
    odoo_session.records["payment.transaction"][50]["state"] = "pending"
    before = repo.snapshot(order_id)

    resp = post_event(client, payment_event())

    assert resp.status_code == 200
    assert resp.json()["received"] is True
    assert resp.json()["outcome"] == "transaction_not_done"
    assert repo.docs[order_id] == before
    assert mailer.sent == []


def test_unknown_transaction_is_acknowledged(client, repo, order_id):
    resp = post_event(client, payment_event(intent_id="pi_unknown"))

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "transaction_not_found"
    assert repo.docs[order_id]["payment_status"] == "pending"


def test_paid_and_invoiced(client, repo, storage, mailer, clock, order_id):
    resp = post_event(client, payment_event())

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "invoiced"

    doc = repo.docs[order_id]
    assert doc["payment_status"] == "paid"
    assert doc["paid_at"] is not None
    assert doc["invoice_id"] == INVOICE_ID
    assert set(doc["pdfs"]) == {"devis_unsigned", "devis_signed", "invoice", "supplier_delivery_note"}
    assert doc["delivery"]["status"] == "pending"
    assert doc["delivery"]["token"]

    note = storage.blobs["requests/1/bon-livraison-1.pdf"]
    assert note.startswith(b"%PDF")
    assert f"requests/1/facture-{INVOICE_ID}.pdf" in storage.blobs
    assert f"requests/1/devis-signed-{QUOTATION_ID}.pdf" in storage.blobs

    fulfillment = next(e for e in mailer.sent if e.to == FULFILLMENT_EMAIL)
    assert fulfillment.filenames == ["bon-livraison-1.pdf"]
    confirmation = next(e for e in mailer.sent if e.to == "jane@example.com")
    assert confirmation.filenames == [f"devis-signed-{QUOTATION_ID}.pdf", f"facture-{INVOICE_ID}.pdf"]
    assert {"email_fulfillment_sent", "email_confirmation_sent"} <= set(doc["completed_effects"])
    assert clock.sleeps == []


def test_replayed_event_is_a_noop(client, repo, storage, mailer, order_id):
    post_event(client, payment_event())
    after_first = repo.snapshot(order_id)
    uploads = list(storage.uploads)
    sent = len(mailer.sent)

    resp = post_event(client, payment_event())

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "already_paid"
    assert repo.docs[order_id] == after_first
    assert storage.uploads == uploads
    assert len(mailer.sent) == sent


def test_invoice_not_posted_within_budget(client, repo, odoo_session, mailer, clock, order_id):
    odoo_session.records["account.move"][INVOICE_ID]["state"] = "draft"

    resp = post_event(client, payment_event())

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "invoice_pending"
    doc = repo.docs[order_id]
    assert doc["payment_status"] == "paid"
    assert "delivery" not in doc
    assert mailer.sent == []
    # three attempts, two waits of INVOICE_POLL_DELAY
    assert clock.sleeps == [2.0, 2.0]


def test_sale_order_not_confirmed(client, repo, odoo_session, mailer, clock, order_id):
    odoo_session.records["sale.order"][QUOTATION_ID]["state"] = "sent"

    resp = post_event(client, payment_event())

    assert resp.json()["outcome"] == "not_confirmed"
    assert repo.docs[order_id]["payment_status"] == "paid"
    assert clock.sleeps == [1.0]
    assert mailer.sent == []


def test_odoo_unreachable_before_transition_returns_500(client, repo, odoo, order_id):
    odoo.error = OdooAuthError("Odoo session not returned")

    resp = post_event(client, payment_event())

    assert resp.status_code == 500
    assert repo.docs[order_id]["payment_status"] == "pending"


def test_failed_fulfillment_email_does_not_block_customer_email(client, repo, mailer, order_id):
    mailer.fail_for = {FULFILLMENT_EMAIL}

    resp = post_event(client, payment_event())

    assert resp.json()["outcome"] == "invoiced"
    assert [e.to for e in mailer.sent] == ["jane@example.com"]
    effects = repo.docs[order_id]["completed_effects"]
    assert "email_confirmation_sent" in effects
    assert "email_fulfillment_sent" not in effects


def test_failed_invoice_pdf_does_not_block_delivery(client, repo, odoo_session, mailer, order_id):
    odoo_session.fail_on[("account.report_invoice", "render")] = RuntimeError("report crashed")

    resp = post_event(client, payment_event())

    assert resp.json()["outcome"] == "invoiced"
    doc = repo.docs[order_id]
    assert "invoice" not in doc["pdfs"]
    assert doc["delivery"]["status"] == "pending"
    confirmation = next(e for e in mailer.sent if e.to == "jane@example.com")
    assert confirmation.filenames == [f"devis-signed-{QUOTATION_ID}.pdf"]


def test_legal_documents_attached_in_order(client, mailer, processor, monkeypatch, order_id):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        if request.url.path == "/retractation.pdf":
            return httpx.Response(404)
        if request.url.path == "/fiche-technique.pdf":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, content=b"%PDF " + request.url.path.encode(), headers={"content-type": "application/pdf"})

    monkeypatch.setattr(
        email_service,
        "LEGAL_ATTACHMENTS",
        [
            ("cgv.pdf", "https://docs.test/cgv.pdf"),
            ("retractation.pdf", "https://docs.test/retractation.pdf"),
            ("fiche-technique.pdf", "https://docs.test/fiche-technique.pdf"),
            ("garantie.pdf", "https://docs.test/garantie.pdf"),
        ],
    )
    processor.http = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    resp = post_event(client, payment_event())

    assert resp.status_code == 200
    assert requested == ["/cgv.pdf", "/retractation.pdf", "/fiche-technique.pdf", "/garantie.pdf"]
    confirmation = next(e for e in mailer.sent if e.to == "jane@example.com")
    assert confirmation.filenames == [
        f"devis-signed-{QUOTATION_ID}.pdf",
        f"facture-{INVOICE_ID}.pdf",
        "cgv.pdf",
        "garantie.pdf",
    ]
    assert confirmation.attachments[2].content == b"%PDF /cgv.pdf"
