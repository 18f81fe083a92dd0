# tests/test_check_payments.py
import pytest

from app.services.odoo_client import OdooError
from tests.fakes import CRON_SECRET


@pytest.fixture
def orders(repo, odoo_session):
    paid = repo.seed(
        platform_count=1,
        quotation_id=700,
        payment_status="pending",
        client={"firstName": "Jane", "email": "jane@example.com"},
    )
    unpaid = repo.seed(
        platform_count=2,
        quotation_id=701,
        payment_status="pending_payment",
        client={"firstName": "Jan", "email": "jan@example.com"},
    )
    simulator = repo.seed(platform_count=3, payment_status="pending_payment", source="simulator")
    repo.seed(platform_count=4, quotation_id=704, payment_status="paid")

    odoo_session.put("sale.order", 700, state="sale", invoice_ids=[900])
    odoo_session.put("account.move", 900, state="posted", payment_state="paid")
    odoo_session.put("sale.order", 701, state="sent", invoice_ids=[])
    return {"paid": paid, "unpaid": unpaid, "simulator": simulator}


def check(client, **headers):
    return client.get("/api/check-odoo-payments", headers=headers)


def test_requires_cron_secret(client, repo, odoo, orders):
    resp = check(client)

    assert resp.status_code == 401
    assert odoo.auth_count == 0
    assert repo.calls == []


def test_wrong_secret(client, odoo, orders):
    assert check(client, **{"x-cron-secret": "nope"}).status_code == 401
    assert check(client, Authorization="Bearer nope").status_code == 401


def test_marks_paid_orders(client, repo, mailer, orders):
    resp = check(client, **{"x-cron-secret": CRON_SECRET})

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["pending"] == 3
    assert body["checked"] == 2
    assert body["updated"] == 1
    assert "errors" not in body

    assert repo.docs[orders["paid"]]["payment_status"] == "paid"
    assert repo.docs[orders["paid"]]["invoice_id"] == 900
    assert repo.docs[orders["unpaid"]]["payment_status"] == "pending_payment"
    assert {e.to for e in mailer.sent} == {"jane@example.com", "ops@wenergy.test"}


def test_bearer_token_accepted(client, orders):
    resp = client.post("/api/check-odoo-payments", headers={"Authorization": f"Bearer {CRON_SECRET}"})

    assert resp.status_code == 200
    assert resp.json()["updated"] == 1


def test_odoo_errors_are_collected(client, repo, odoo_session, orders):
    odoo_session.fail_on[("sale.order", "read")] = OdooError("Odoo sale.order.read failed")

    resp = check(client, **{"x-cron-secret": CRON_SECRET})

    assert resp.status_code == 200
    body = resp.json()
    assert body["updated"] == 0
    assert {e["doc_id"] for e in body["errors"]} == {orders["paid"], orders["unpaid"]}
    assert all(e["step"] == "odoo" for e in body["errors"])
    assert repo.docs[orders["paid"]]["payment_status"] == "pending"
