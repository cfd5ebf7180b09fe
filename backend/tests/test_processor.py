from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.clock import as_utc
from app.core.constants import AUTO_DELIST_DURATION
from app.core.errors import TransientStoreFailure
from app.models import FeaturedSlot, Order, Product, TransactionLog, Vendor, WebhookEvent
from app.services.payments import processor
from app.services.payments.events import decode_event
from app.services.payments.processor import process_incoming_event
from tests.conftest import (
    NOW,
    checkout_completed_event,
    dispute_event,
    subscription_updated_event,
)

pytestmark = pytest.mark.unit


def _process(db, raw, notify=None):
    return process_incoming_event(
        db, decode_event(raw), notify=notify or (lambda *args: None), emit_telemetry=False, now=NOW
    )


def _event_row(db, event_id):
    return db.query(WebhookEvent).filter(WebhookEvent.external_event_id == event_id).one_or_none()


# =============================================================================
# Idempotent processing
# =============================================================================


def test_same_event_twice_has_one_effect(db, make_vendor):
    vendor = make_vendor()
    raw = checkout_completed_event(metadata={"vendor_id": vendor.id})

    first = _process(db, raw)
    second = _process(db, raw)

    assert first.skipped is False
    assert second.skipped is True
    assert db.query(Order).count() == 1
    assert db.query(TransactionLog).count() == 1
    assert _event_row(db, "evt_checkout_1").processed_at is not None


def test_distinct_events_for_same_payment_create_one_order(db, make_vendor):
    vendor = make_vendor()
    _process(db, checkout_completed_event(event_id="evt_a", payment_intent="pi_123", metadata={"vendor_id": vendor.id}))
    _process(db, checkout_completed_event(event_id="evt_b", payment_intent="pi_123", metadata={"vendor_id": vendor.id}))

    orders = db.query(Order).filter(Order.payment_reference == "pi_123").all()
    assert len(orders) == 1
    assert _event_row(db, "evt_b").processed_at is not None


def test_order_commission_uses_vendor_rate(db, make_vendor):
    vendor = make_vendor(commission_rate=0.08)
    _process(db, checkout_completed_event(amount_total=10000, metadata={"vendor_id": vendor.id}))

    order = db.query(Order).one()
    assert order.commission_cents == 800
    assert order.vendor_net_cents == 9200
    ledger = db.query(TransactionLog).one()
    assert ledger.type == "commission_deducted"
    assert ledger.amount_cents == 800


def test_half_cent_commission_rounds_up(db, make_vendor):
    vendor = make_vendor()
    _process(db, checkout_completed_event(amount_total=50, metadata={"vendor_id": vendor.id}))

    order = db.query(Order).one()
    assert order.commission_cents == 3
    assert order.vendor_net_cents == 47
    assert db.query(TransactionLog).one().amount_cents == 3


def test_concurrent_order_insert_loses_quietly(db, make_vendor, monkeypatch):
    vendor = make_vendor()
    processor.record_order(db, payment_reference="pi_race", amount_cents=2000, metadata={"vendor_id": vendor.id})
    # The other delivery committed between this one's existence check and its insert
    monkeypatch.setattr(processor, "_order_exists", lambda *args: False)

    again = processor.record_order(
        db, payment_reference="pi_race", amount_cents=2000, metadata={"vendor_id": vendor.id}
    )

    assert again is None
    assert db.query(Order).filter(Order.payment_reference == "pi_race").count() == 1
    assert db.query(TransactionLog).count() == 1


def test_featured_checkout_activates_reserved_slot(db, make_vendor, make_region, make_slot):
    vendor = make_vendor()
    region = make_region()
    slot = make_slot(vendor, region, NOW, NOW + timedelta(days=30), status="scheduled")

    _process(db, checkout_completed_event(
        payment_intent="pi_feat",
        metadata={"vendor_id": vendor.id, "type": "featured_slot", "reserved_slot_id": str(slot.id)},
    ))

    db.expire_all()
    activated = db.get(FeaturedSlot, slot.id)
    assert activated.status == "active"
    assert activated.payment_reference == "pi_feat"
    assert activated.charged_amount_cents == 2000


def test_payment_for_cancelled_slot_does_not_revive_it(db, make_vendor, make_region, make_slot):
    vendor = make_vendor()
    region = make_region()
    slot = make_slot(vendor, region, NOW, NOW + timedelta(days=30), status="cancelled")

    result = _process(db, checkout_completed_event(
        event_id="evt_late_pay",
        payment_intent="pi_late",
        metadata={"vendor_id": vendor.id, "type": "featured_slot", "reserved_slot_id": str(slot.id)},
    ))

    assert result.skipped is False
    db.expire_all()
    stale = db.get(FeaturedSlot, slot.id)
    assert stale.status == "cancelled"
    assert stale.payment_reference is None
    assert db.query(Order).filter(Order.payment_reference == "pi_late").count() == 1
    row = _event_row(db, "evt_late_pay")
    assert row.processed_at is not None
    assert row.payload_summary["error"] == "domain_invariant_violation"


def test_stored_summary_is_sanitized(db, make_vendor):
    vendor = make_vendor()
    _process(db, checkout_completed_event(metadata={"vendor_id": vendor.id}))

    summary = _event_row(db, "evt_checkout_1").payload_summary
    assert summary["payment_intent"] == "pi_123"
    assert "buyer@example.com" not in str(summary)


# =============================================================================
# Disputes
# =============================================================================


def test_third_dispute_suspends_vendor_once(db, make_vendor):
    vendor = make_vendor(dispute_count=2)

    _process(db, dispute_event("charge.dispute.created", vendor.id, "evt_d3"))
    db.expire_all()
    suspended = db.get(Vendor, vendor.id)
    assert suspended.dispute_count == 3
    assert suspended.vendor_status == "suspended"
    assert suspended.tier == "suspended"
    assert as_utc(suspended.auto_delisted_until) == NOW + AUTO_DELIST_DURATION
    assert suspended.suspension_reason == "Auto-suspended: 3 disputes"

    later = NOW + timedelta(days=1)
    process_incoming_event(
        db, decode_event(dispute_event("charge.dispute.created", vendor.id, "evt_d4")),
        notify=lambda *a: None, emit_telemetry=False, now=later,
    )
    db.expire_all()
    again = db.get(Vendor, vendor.id)
    assert again.dispute_count == 4
    assert as_utc(again.auto_delisted_until) == NOW + AUTO_DELIST_DURATION


def test_dispute_below_threshold_only_counts(db, make_vendor):
    vendor = make_vendor(dispute_count=0)
    _process(db, dispute_event("charge.dispute.created", vendor.id, "evt_d1"))

    db.expire_all()
    v = db.get(Vendor, vendor.id)
    assert v.dispute_count == 1
    assert v.vendor_status == "active"
    assert as_utc(v.last_dispute_at) == NOW


def test_won_dispute_decrements_and_lost_does_not(db, make_vendor):
    vendor = make_vendor(dispute_count=1)

    _process(db, dispute_event("charge.dispute.closed", vendor.id, "evt_lost", status="lost"))
    db.expire_all()
    assert db.get(Vendor, vendor.id).dispute_count == 1

    _process(db, dispute_event("charge.dispute.closed", vendor.id, "evt_won", status="won"))
    _process(db, dispute_event("charge.dispute.closed", vendor.id, "evt_won_2", status="won"))
    db.expire_all()
    assert db.get(Vendor, vendor.id).dispute_count == 0


# =============================================================================
# Subscription tier changes
# =============================================================================


def test_downgrade_unpublishes_excess_and_notifies(db, make_vendor, make_products):
    vendor = make_vendor(tier="pro", business_name="Fitzroy Florist")
    products = make_products(vendor, 7)
    calls = []

    _process(db, subscription_updated_event(vendor.id, "basic"), notify=lambda *args: calls.append(args))

    db.expire_all()
    assert db.get(Vendor, vendor.id).tier == "basic"
    unpublished = {p.id for p in db.query(Product).filter(Product.published.is_(False)).all()}
    assert unpublished == {p.id for p in products[:4]}
    assert len(calls) == 1
    to_email, business_name, old_tier, new_tier, count, titles = calls[0]
    assert (to_email, business_name, old_tier, new_tier, count) == ("owner@example.com", "Fitzroy Florist", "pro", "basic", 4)
    assert titles == ["Product 1", "Product 2", "Product 3", "Product 4"]


def test_upgrade_does_not_unpublish_or_notify(db, make_vendor, make_products):
    vendor = make_vendor(tier="basic")
    make_products(vendor, 3)
    calls = []

    _process(db, subscription_updated_event(vendor.id, "premium"), notify=lambda *args: calls.append(args))

    assert db.query(Product).filter(Product.published.is_(True)).count() == 3
    assert calls == []


def test_notifier_failure_does_not_fail_event(db, make_vendor, make_products):
    vendor = make_vendor(tier="pro")
    make_products(vendor, 5)

    def _broken(*args):
        raise RuntimeError("smtp down")

    result = _process(db, subscription_updated_event(vendor.id, "basic"), notify=_broken)

    assert result.skipped is False
    assert _event_row(db, "evt_sub_1").processed_at is not None
    assert db.query(Product).filter(Product.published.is_(True)).count() == 3


def test_account_updated_syncs_linked_vendor(db, make_vendor):
    vendor = make_vendor(payment_account_id="acct_1")
    _process(db, {
        "id": "evt_acct",
        "type": "account.updated",
        "data": {"object": {"id": "acct_1", "charges_enabled": True, "payouts_enabled": True}},
    })

    db.expire_all()
    v = db.get(Vendor, vendor.id)
    assert v.payment_account_status == "active"
    assert v.onboarding_complete is True


# =============================================================================
# Failure handling
# =============================================================================


def test_unknown_event_type_is_recorded_as_processed(db):
    result = _process(db, {"id": "evt_unknown", "type": "invoice.paid", "data": {"object": {"id": "in_1"}}})

    assert result.summary == {"type": "invoice.paid", "raw": {"id": "in_1"}}
    assert _event_row(db, "evt_unknown").processed_at is not None


def test_unknown_vendor_completes_with_error_summary(db):
    result = _process(db, dispute_event("charge.dispute.created", "ghost", "evt_ghost"))

    assert result.skipped is False
    row = _event_row(db, "evt_ghost")
    assert row.processed_at is not None
    assert row.payload_summary["error"] == "domain_invariant_violation"


def test_unexpected_failure_releases_reservation(db, make_vendor, monkeypatch):
    vendor = make_vendor()

    def _boom(*args, **kwargs):
        raise RuntimeError("handler bug")

    monkeypatch.setattr(processor, "handle_event", _boom)
    with pytest.raises(RuntimeError):
        _process(db, dispute_event("charge.dispute.created", vendor.id, "evt_retry"))

    assert _event_row(db, "evt_retry") is None


def test_store_failure_releases_and_raises_transient(db, make_vendor, monkeypatch):
    vendor = make_vendor()
    original = processor.handle_event

    def _db_down(*args, **kwargs):
        raise OperationalError("UPDATE vendors", {}, Exception("connection reset"))

    monkeypatch.setattr(processor, "handle_event", _db_down)
    with pytest.raises(TransientStoreFailure):
        _process(db, dispute_event("charge.dispute.created", vendor.id, "evt_transient"))

    assert _event_row(db, "evt_transient") is None
    monkeypatch.setattr(processor, "handle_event", original)
    assert _process(db, dispute_event("charge.dispute.created", vendor.id, "evt_transient")).skipped is False
