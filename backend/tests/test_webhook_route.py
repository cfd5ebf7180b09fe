import asyncio
import json

import pytest

from app.api.routes import webhooks
from app.models import Order, Product, WebhookEvent
from app.services.payments import processor
from tests.conftest import (
    checkout_completed_event,
    post_webhook,
    sign_payload,
    subscription_updated_event,
)

pytestmark = [pytest.mark.unit, pytest.mark.api]


def test_valid_event_is_processed_then_skipped(client, db, make_vendor):
    vendor = make_vendor()
    event = checkout_completed_event(metadata={"vendor_id": vendor.id})

    first = post_webhook(client, event)
    second = post_webhook(client, event)

    assert first.status_code == 200
    assert first.json() == {"received": True, "skipped": False}
    assert second.status_code == 200
    assert second.json() == {"received": True, "skipped": True}
    assert db.query(Order).count() == 1


def test_processing_runs_off_the_event_loop(client, monkeypatch):
    seen = {}
    original = processor.process_incoming_event

    def _record_loop(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            seen["on_loop"] = True
        except RuntimeError:
            seen["on_loop"] = False
        return original(*args, **kwargs)

    monkeypatch.setattr(webhooks, "process_incoming_event", _record_loop)
    resp = post_webhook(client, checkout_completed_event(event_id="evt_thread"))

    assert resp.status_code == 200
    assert seen == {"on_loop": False}


def test_bad_signature_is_rejected_before_admission(client, db):
    event = checkout_completed_event()
    resp = post_webhook(client, event, signature=sign_payload(json.dumps(event), secret="whsec_wrong"))

    assert resp.status_code == 400
    assert db.query(WebhookEvent).count() == 0


def test_missing_signature_header_is_rejected(client, db):
    resp = client.post("/webhooks/stripe", content=json.dumps(checkout_completed_event()))

    assert resp.status_code == 400
    assert db.query(WebhookEvent).count() == 0


def test_malformed_known_event_is_rejected(client, db):
    resp = post_webhook(client, {"id": "evt_bad", "type": "checkout.session.completed", "data": {}})

    assert resp.status_code == 400
    assert db.query(WebhookEvent).count() == 0


def test_processing_failure_returns_500_and_allows_redelivery(client, db, make_vendor, monkeypatch):
    vendor = make_vendor()
    event = checkout_completed_event(metadata={"vendor_id": vendor.id})
    original = processor.handle_event

    def _boom(*args, **kwargs):
        raise RuntimeError("handler bug")

    monkeypatch.setattr(processor, "handle_event", _boom)
    failed = post_webhook(client, event)
    assert failed.status_code == 500
    assert db.query(WebhookEvent).count() == 0

    monkeypatch.setattr(processor, "handle_event", original)
    retried = post_webhook(client, event)
    assert retried.status_code == 200
    assert retried.json()["skipped"] is False
    assert db.query(Order).count() == 1


def test_downgrade_via_webhook_uses_injected_notifier(client, db, notifier, make_vendor, make_products):
    vendor = make_vendor(tier="pro")
    make_products(vendor, 6)

    resp = post_webhook(client, subscription_updated_event(vendor.id, "basic"))

    assert resp.status_code == 200
    assert db.query(Product).filter(Product.published.is_(True)).count() == 3
    assert len(notifier.calls) == 1
    assert notifier.calls[0][4] == 3
