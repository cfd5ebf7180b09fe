"""
Test configuration and fixtures.

Each test gets a fresh in-memory SQLite database with the full model schema. The FastAPI client
overrides get_db to hand routes the same session the test inspects, and swaps the Stripe checkout
gateway and the downgrade notifier for recording fakes.
"""
import hashlib
import hmac
import json
import os
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

# Set test environment before importing app (DATABASE_URL stays postgres: the engine is never connected)
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("POSTHOG_API_KEY", "")

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.core.errors import CheckoutUnavailable
from app.db.base import Base
from app.db.session import build_engine, get_db
from app.models import FeaturedSlot, Product, Region, Vendor
from app.services.payments.gateway import CheckoutHandle, get_checkout_gateway
from app.services.payments.processor import get_downgrade_notifier

WEBHOOK_SECRET = "whsec_test"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "api: API endpoint tests")


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "posthog_api_key", "")
    monkeypatch.setattr(settings, "smtp_user", "")
    monkeypatch.setattr(settings, "smtp_password", "")


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture
def make_region(db):
    def _make(name: str | None = None, slot_cap: int | None = None, state: str = "VIC") -> Region:
        region = Region(name=name or f"Region {uuid.uuid4().hex[:6]}", state=state, slot_cap=slot_cap)
        db.add(region)
        db.commit()
        return region

    return _make


@pytest.fixture
def make_vendor(db):
    def _make(**overrides: Any) -> Vendor:
        fields = {
            "id": str(uuid.uuid4()),
            "business_name": "Brunswick Bakery",
            "contact_email": "owner@example.com",
            "tier": "premium",
            "vendor_status": "active",
            "dispute_count": 0,
        }
        fields.update(overrides)
        vendor = Vendor(**fields)
        db.add(vendor)
        db.commit()
        return vendor

    return _make


@pytest.fixture
def make_products(db):
    def _make(vendor: Vendor, count: int, start: datetime = NOW - timedelta(days=100)) -> list[Product]:
        products = [
            Product(
                id=str(uuid.uuid4()),
                vendor_id=vendor.id,
                title=f"Product {i + 1}",
                published=True,
                created_at=start + timedelta(days=i),
                updated_at=start + timedelta(days=i),
            )
            for i in range(count)
        ]
        db.add_all(products)
        db.commit()
        return products

    return _make


@pytest.fixture
def make_slot(db):
    def _make(
        vendor: Vendor,
        region: Region,
        start: datetime,
        end: datetime,
        status: str = "active",
    ) -> FeaturedSlot:
        slot = FeaturedSlot(
            vendor_id=vendor.id,
            business_profile_id=f"bp_{vendor.id[:8]}",
            region_id=region.id,
            region_label=region.name,
            start_time=start,
            end_time=end,
            status=status,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


# =============================================================================
# FAKES
# =============================================================================


class FakeCheckoutGateway:
    """Records checkout requests; fail=True raises CheckoutUnavailable like a Stripe outage."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    def create_featured_slot_session(self, **kwargs: Any) -> CheckoutHandle:
        self.calls.append(kwargs)
        if self.fail:
            raise CheckoutUnavailable("Payment provider error: simulated outage")
        return CheckoutHandle(
            session_id=f"cs_test_{kwargs['reserved_slot_id']}",
            url=f"https://checkout.stripe.com/c/pay/cs_test_{kwargs['reserved_slot_id']}",
        )


class RecordingNotifier:
    def __init__(self):
        self.calls: list[tuple] = []

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)


@pytest.fixture
def checkout_gateway():
    return FakeCheckoutGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


# =============================================================================
# API CLIENT
# =============================================================================


@pytest.fixture
def client(db, checkout_gateway, notifier):
    from app.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_checkout_gateway] = lambda: checkout_gateway
    app.dependency_overrides[get_downgrade_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# STRIPE EVENTS
# =============================================================================


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """stripe-signature header value: t=<ts>,v1=HMAC-SHA256(secret, "<ts>.<payload>")."""
    ts = timestamp if timestamp is not None else int(time.time())
    digest = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def checkout_completed_event(
    event_id: str = "evt_checkout_1",
    payment_intent: str = "pi_123",
    amount_total: int = 2000,
    metadata: dict[str, str] | None = None,
) -> dict[str, Any]:
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": f"cs_{event_id}",
                "amount_total": amount_total,
                "payment_intent": payment_intent,
                "customer_details": {"email": "buyer@example.com", "name": "Jo Buyer"},
                "metadata": metadata or {},
            }
        },
    }


def dispute_event(event_type: str, vendor_id: str, event_id: str, status: str = "needs_response") -> dict[str, Any]:
    return {
        "id": event_id,
        "type": event_type,
        "data": {"object": {"id": f"dp_{event_id}", "status": status, "metadata": {"vendor_id": vendor_id}}},
    }


def subscription_updated_event(vendor_id: str, tier: str, event_id: str = "evt_sub_1") -> dict[str, Any]:
    return {
        "id": event_id,
        "type": "customer.subscription.updated",
        "data": {"object": {"id": "sub_1", "status": "active", "metadata": {"vendor_id": vendor_id, "tier": tier}}},
    }


def post_webhook(client: TestClient, event: dict[str, Any], signature: str | None = None):
    payload = json.dumps(event)
    headers = {"stripe-signature": signature if signature is not None else sign_payload(payload)}
    return client.post("/webhooks/stripe", content=payload, headers={**headers, "content-type": "application/json"})
