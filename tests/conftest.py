# tests/conftest.py
import os

# Configuration is read at import time
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["CRON_SECRET"] = "cron-secret"
os.environ["RESEND_API_KEY"] = "re_test"
os.environ["FULFILLMENT_EMAIL"] = "ops@wenergy.test"
os.environ["LEGAL_ATTACHMENTS"] = ""
os.environ["PUBLIC_BASE_URL"] = "https://orders.wenergy.test"
os.environ["SCAN_REQUIRE_TOKEN"] = "true"
os.environ["ORDER_CONFIRM_DELAY"] = "1"
os.environ["INVOICE_POLL_ATTEMPTS"] = "3"
os.environ["INVOICE_POLL_DELAY"] = "2"

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from app.services.payment_service import PaymentProcessor, default_confirm_policy, default_invoice_policy
from app.utils.dependencies import (
    get_mailer,
    get_odoo,
    get_order_repository,
    get_payment_processor,
    get_storage,
)
from main import app
from tests.fakes import FakeClock, FakeMailer, FakeOdoo, FakeOdooSession, FakeOrderRepository, FakeStorage


@pytest.fixture
def repo():
    return FakeOrderRepository()


@pytest.fixture
def odoo_session():
    return FakeOdooSession()


@pytest.fixture
def odoo(odoo_session):
    return FakeOdoo(odoo_session)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def processor(repo, odoo, storage, mailer, clock):
    return PaymentProcessor(
        repo,
        odoo,
        storage,
        mailer,
        http=None,
        confirm_policy=replace(default_confirm_policy(), sleep=clock.sleep),
        invoice_policy=replace(default_invoice_policy(), sleep=clock.sleep),
    )


@pytest.fixture
def client(repo, odoo, storage, mailer, processor):
    app.dependency_overrides[get_order_repository] = lambda: repo
    app.dependency_overrides[get_odoo] = lambda: odoo
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_payment_processor] = lambda: processor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
