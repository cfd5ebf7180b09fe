"""
Featured placement API: reserve a slot (with checkout), join the waiting queue, read slots + queue.

Reservation flow:
  resolve vendor + region → eligibility → plan (FIFO backfill) → planned start beyond
  FEATURED_SLOT_MAX_LEAD? join queue (202) : capacity-checked insert → checkout session (201).
A checkout failure cancels the just-reserved slot so it does not hold capacity unpaid.
"""
import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utc_now
from app.core.constants import FEATURED_SLOT_MAX_LEAD, VENDOR_ACTIVE
from app.core.errors import CheckoutUnavailable, MarketplaceError, NotEligible, NotFound, domain_error_to_http
from app.db.session import get_db
from app.models.featured_queue_entry import FeaturedQueueEntry
from app.models.featured_slot import FeaturedSlot
from app.models.region import Region
from app.models.vendor import Vendor
from app.services.featured import (
    cancel_reserved_slot,
    insert_planned_slot,
    join_queue,
    list_vendor_queue,
    list_vendor_slots,
    plan_slot,
    queue_position,
    region_slot_cap,
    region_utilization,
)
from app.services.payments.gateway import StripeCheckoutGateway, get_checkout_gateway
from app.services.tiers import tier_limits

router = APIRouter()
logger = logging.getLogger(__name__)


class FeaturedRequest(BaseModel):
    vendor_id: str = Field(..., min_length=1, max_length=36)
    business_profile_id: str = Field(..., min_length=1, max_length=64)
    region_id: int | None = Field(None, description="Region id; or pass region (name)")
    region: str | None = Field(None, max_length=128, description="Region name, case-insensitive")
    suburb_label: str | None = Field(None, max_length=128, description="Label shown on the placement; defaults to region name")

    @model_validator(mode="after")
    def region_given(self):
        if self.region_id is None and not (self.region or "").strip():
            raise ValueError("region_id or region is required")
        return self


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def _resolve_region(db: Session, body: FeaturedRequest) -> Region:
    if body.region_id is not None:
        region = db.get(Region, body.region_id)
    else:
        name = body.region.strip().lower()
        region = db.query(Region).filter(func.lower(Region.name) == name).first()
    if region is None:
        raise NotFound(f"Region {body.region_id if body.region_id is not None else body.region!r} not found")
    return region


def _eligible_vendor(db: Session, vendor_id: str) -> tuple[Vendor, int]:
    """Vendor plus its featured slot allowance. Raises NotFound / NotEligible."""
    vendor = db.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFound(f"Vendor {vendor_id} not found")
    if vendor.vendor_status != VENDOR_ACTIVE:
        raise NotEligible("Vendor account not active")
    vendor_cap = tier_limits(vendor.tier).get("featured_slots", 0)
    if vendor_cap <= 0:
        raise NotEligible(f"Tier {vendor.tier!r} does not include featured slots")
    return vendor, vendor_cap


def _slot_json(slot: FeaturedSlot) -> dict[str, Any]:
    return {
        "id": slot.id,
        "region_id": slot.region_id,
        "region_label": slot.region_label,
        "status": slot.status,
        "start_time": _iso(slot.start_time),
        "end_time": _iso(slot.end_time),
        "charged_amount_cents": slot.charged_amount_cents,
    }


def _queue_json(entry: FeaturedQueueEntry, position: int) -> dict[str, Any]:
    return {
        "id": entry.id,
        "region_id": entry.region_id,
        "region_label": entry.region_label,
        "status": entry.status,
        "joined_at": _iso(entry.joined_at),
        "position": position,
    }


@router.post("/reserve", status_code=status.HTTP_201_CREATED)
def reserve_featured_slot(
    body: FeaturedRequest,
    response: Response,
    db: Session = Depends(get_db),
    gateway: StripeCheckoutGateway = Depends(get_checkout_gateway),
) -> dict[str, Any]:
    """
    Reserve the next featured window for the vendor and open a checkout session for it.
    The slot stays 'scheduled' until the checkout.session.completed webhook activates it.
    """
    try:
        vendor, vendor_cap = _eligible_vendor(db, body.vendor_id)
        region = _resolve_region(db, body)
        label = (body.suburb_label or "").strip() or region.name
        region_cap = region_slot_cap(region)
        now = utc_now()

        plan = plan_slot(db, region.id, region_cap, now=now)
        if plan.start_time > now + FEATURED_SLOT_MAX_LEAD:
            entry = join_queue(
                db,
                vendor_id=vendor.id,
                business_profile_id=body.business_profile_id,
                region_id=region.id,
                region_label=label,
                now=now,
            )
            response.status_code = status.HTTP_202_ACCEPTED
            return {"queued": True, "queue_entry": _queue_json(entry, queue_position(db, entry))}

        slot = insert_planned_slot(
            db,
            plan,
            vendor_id=vendor.id,
            business_profile_id=body.business_profile_id,
            region_label=label,
            region_cap=region_cap,
            vendor_cap=vendor_cap,
            now=now,
        )
        try:
            checkout = gateway.create_featured_slot_session(
                vendor_id=vendor.id,
                business_profile_id=body.business_profile_id,
                region_id=region.id,
                region_label=label,
                reserved_slot_id=slot.id,
                vendor_account_id=vendor.payment_account_id,
            )
        except CheckoutUnavailable:
            cancel_reserved_slot(db, slot.id)
            raise
    except MarketplaceError as e:
        logger.info("Featured reservation rejected vendor=%s: %s", body.vendor_id, e)
        raise domain_error_to_http(e) from e

    return {
        "queued": False,
        "slot_id": slot.id,
        "scheduled_start_time": _iso(slot.start_time),
        "scheduled_end_time": _iso(slot.end_time),
        "starts_immediately": plan.starts_immediately,
        "checkout": checkout.as_dict(),
    }


@router.post("/queue")
def join_featured_queue(body: FeaturedRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Join the waiting queue for a region. Idempotent per (vendor, region)."""
    try:
        vendor, _ = _eligible_vendor(db, body.vendor_id)
        region = _resolve_region(db, body)
    except MarketplaceError as e:
        raise domain_error_to_http(e) from e
    entry = join_queue(
        db,
        vendor_id=vendor.id,
        business_profile_id=body.business_profile_id,
        region_id=region.id,
        region_label=(body.suburb_label or "").strip() or region.name,
    )
    return {"queue_entry": _queue_json(entry, queue_position(db, entry))}


@router.get("/vendors/{vendor_id}")
def vendor_featured_state(vendor_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Vendor's current/upcoming slots and queue entries with live positions."""
    vendor = db.get(Vendor, vendor_id)
    if vendor is None:
        raise domain_error_to_http(NotFound(f"Vendor {vendor_id} not found"))
    return {
        "slots": [_slot_json(s) for s in list_vendor_slots(db, vendor_id)],
        "queue": [_queue_json(e, pos) for e, pos in list_vendor_queue(db, vendor_id)],
        "tier": vendor.tier,
        "max_slots": tier_limits(vendor.tier).get("featured_slots", 0),
    }


@router.get("/regions/{region_id}/availability")
def region_availability(region_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Slot cap and utilization for a region, plus the window the next reservation would get."""
    region = db.get(Region, region_id)
    if region is None:
        raise domain_error_to_http(NotFound(f"Region {region_id} not found"))
    now = utc_now()
    usage = region_utilization(db, region_id, now)
    try:
        plan = plan_slot(db, region_id, usage.slot_cap, now=now)
    except MarketplaceError:
        plan = None
    return {
        **usage.as_dict(),
        "region_name": region.name,
        "next_start_time": _iso(plan.start_time) if plan else None,
    }
