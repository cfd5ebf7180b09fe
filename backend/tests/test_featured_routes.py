from datetime import datetime, timedelta

import pytest

from app.core.clock import utc_now
from app.core.constants import FEATURED_SLOT_BUFFER
from app.core.errors import MSG_TRY_AGAIN
from app.models import FeaturedQueueEntry, FeaturedSlot
from tests.conftest import FakeCheckoutGateway

pytestmark = [pytest.mark.unit, pytest.mark.api]


def _body(vendor, region_row=None, **extra):
    body = {"vendor_id": vendor.id, "business_profile_id": "bp_1"}
    if region_row is not None:
        body["region_id"] = region_row.id
    body.update(extra)
    return body


# =============================================================================
# POST /featured/reserve
# =============================================================================


def test_reserve_in_open_region_starts_now(client, db, checkout_gateway, make_vendor, make_region):
    vendor = make_vendor()
    region = make_region(name="Brunswick")

    resp = client.post("/featured/reserve", json=_body(vendor, region))

    assert resp.status_code == 201
    data = resp.json()
    assert data["queued"] is False
    assert data["starts_immediately"] is True
    assert data["checkout"]["session_id"] == f"cs_test_{data['slot_id']}"
    slot = db.get(FeaturedSlot, data["slot_id"])
    assert slot.status == "scheduled"
    assert slot.region_label == "Brunswick"
    assert checkout_gateway.calls[0]["reserved_slot_id"] == data["slot_id"]
    assert checkout_gateway.calls[0]["region_label"] == "Brunswick"


def test_reserve_resolves_region_by_name_and_uses_suburb_label(client, db, checkout_gateway, make_vendor, make_region):
    vendor = make_vendor()
    region = make_region(name="Inner North")

    resp = client.post("/featured/reserve", json=_body(vendor, region="inner north", suburb_label="Fitzroy"))

    assert resp.status_code == 201
    assert checkout_gateway.calls[0]["region_id"] == region.id
    assert checkout_gateway.calls[0]["region_label"] == "Fitzroy"
    slot = db.get(FeaturedSlot, resp.json()["slot_id"])
    assert slot.region_id == region.id
    assert slot.region_label == "Fitzroy"


def test_reserve_in_full_region_is_backfilled(client, make_vendor, make_region, make_slot):
    region = make_region(slot_cap=1)
    now = utc_now()
    end = now + timedelta(days=10)
    make_slot(make_vendor(), region, now - timedelta(days=20), end)

    resp = client.post("/featured/reserve", json=_body(make_vendor(), region))

    assert resp.status_code == 201
    data = resp.json()
    assert data["starts_immediately"] is False
    assert datetime.fromisoformat(data["scheduled_start_time"]) == end + FEATURED_SLOT_BUFFER


def test_reserve_beyond_lead_time_joins_queue(client, db, make_vendor, make_region, make_slot):
    region = make_region(slot_cap=1)
    now = utc_now()
    make_slot(make_vendor(), region, now - timedelta(days=1), now + timedelta(days=200))
    vendor = make_vendor()

    resp = client.post("/featured/reserve", json=_body(vendor, region))

    assert resp.status_code == 202
    data = resp.json()
    assert data["queued"] is True
    assert data["queue_entry"]["position"] == 1
    assert db.query(FeaturedSlot).filter(FeaturedSlot.vendor_id == vendor.id).count() == 0
    assert db.query(FeaturedQueueEntry).count() == 1


def test_reserve_rejects_tier_without_featured_slots(client, make_vendor, make_region):
    resp = client.post("/featured/reserve", json=_body(make_vendor(tier="basic"), make_region()))
    assert resp.status_code == 403


def test_reserve_rejects_suspended_vendor(client, make_vendor, make_region):
    resp = client.post("/featured/reserve", json=_body(make_vendor(vendor_status="suspended"), make_region()))
    assert resp.status_code == 403


def test_reserve_unknown_vendor_or_region_is_404(client, make_vendor, make_region):
    region = make_region()
    assert client.post(
        "/featured/reserve", json={"vendor_id": "missing", "business_profile_id": "bp", "region_id": region.id}
    ).status_code == 404
    assert client.post("/featured/reserve", json=_body(make_vendor(), region_id=9999)).status_code == 404


def test_reserve_requires_a_region(client, make_vendor):
    assert client.post("/featured/reserve", json=_body(make_vendor())).status_code == 422


def test_reserve_over_vendor_cap_is_conflict(client, make_vendor, make_region, make_slot):
    vendor = make_vendor()
    now = utc_now()
    for _ in range(3):
        make_slot(vendor, make_region(), now, now + timedelta(days=30))

    resp = client.post("/featured/reserve", json=_body(vendor, make_region()))

    assert resp.status_code == 409
    assert resp.json()["detail"] == MSG_TRY_AGAIN


def test_checkout_failure_cancels_reservation(client, db, make_vendor, make_region):
    from app.main import app
    from app.services.payments.gateway import get_checkout_gateway

    app.dependency_overrides[get_checkout_gateway] = lambda: FakeCheckoutGateway(fail=True)
    vendor = make_vendor()
    region = make_region(slot_cap=1)

    resp = client.post("/featured/reserve", json=_body(vendor, region))

    assert resp.status_code == 502
    db.expire_all()
    slot = db.query(FeaturedSlot).filter(FeaturedSlot.vendor_id == vendor.id).one()
    assert slot.status == "cancelled"
    # The cancelled reservation does not hold the region's only slot
    avail = client.get(f"/featured/regions/{region.id}/availability").json()
    assert avail["committed_count"] == 0


# =============================================================================
# Queue and read endpoints
# =============================================================================


def test_join_queue_is_idempotent(client, db, make_vendor, make_region):
    vendor = make_vendor()
    region = make_region()

    first = client.post("/featured/queue", json=_body(vendor, region))
    second = client.post("/featured/queue", json=_body(vendor, region))

    assert first.status_code == second.status_code == 200
    assert first.json()["queue_entry"]["id"] == second.json()["queue_entry"]["id"]
    assert db.query(FeaturedQueueEntry).count() == 1


def test_vendor_state_lists_slots_and_queue(client, make_vendor, make_region, make_slot):
    vendor = make_vendor()
    region = make_region()
    now = utc_now()
    make_slot(vendor, region, now - timedelta(days=1), now + timedelta(days=29))
    client.post("/featured/queue", json=_body(vendor, make_region()))

    data = client.get(f"/featured/vendors/{vendor.id}").json()

    assert len(data["slots"]) == 1
    assert data["slots"][0]["status"] == "active"
    assert data["queue"][0]["position"] == 1
    assert data["max_slots"] == 3
    assert client.get("/featured/vendors/missing").status_code == 404


def test_region_availability_reports_next_window(client, make_vendor, make_region, make_slot):
    region = make_region(slot_cap=1)
    now = utc_now()
    end = now + timedelta(days=5)
    make_slot(make_vendor(), region, now - timedelta(days=25), end)

    data = client.get(f"/featured/regions/{region.id}/availability").json()

    assert data["slot_cap"] == 1
    assert data["live_count"] == 1
    assert data["has_capacity"] is False
    assert datetime.fromisoformat(data["next_start_time"]) == end + FEATURED_SLOT_BUFFER
