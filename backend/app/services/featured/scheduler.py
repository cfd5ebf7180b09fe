"""
Featured slot scheduler: FIFO backfill planning and the capacity-checked reservation.

Plan (read-only):
  - Load occupying slots in the region, soonest-ending first.
  - Fewer than region_cap → start now.
  - Otherwise start behind slot[count - region_cap]: the Nth overflowing request starts when
    the Nth-from-front occupant frees capacity, plus FEATURED_SLOT_BUFFER.

Reserve (one unit of work):
  - Lock the region row and the vendor row (SELECT ... FOR UPDATE) so concurrent reservations
    against the same region or vendor serialize.
  - Re-check region peak occupancy over the planned window and the vendor's concurrent count
    against the latest committed state; raise RegionCapExceeded / VendorCapExceeded instead of inserting.
  - Insert the slot as 'scheduled'. Payment activates it later.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.core.clock import as_utc, utc_now
from app.core.constants import (
    FEATURED_SLOT_BUFFER,
    FEATURED_SLOT_DURATION,
    OCCUPYING_SLOT_STATUSES,
    SLOT_CANCELLED,
    SLOT_SCHEDULED,
)
from app.core.errors import NotFound, RegionCapExceeded, VendorCapExceeded
from app.db.uow import unit_of_work
from app.models.featured_slot import FeaturedSlot
from app.models.region import Region
from app.models.vendor import Vendor
from app.services.featured.capacity import occupying_slots, peak_occupancy, vendor_slot_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotPlan:
    region_id: int
    start_time: datetime
    end_time: datetime
    queued_behind_slot_id: int | None = None  # None = starts immediately

    @property
    def starts_immediately(self) -> bool:
        return self.queued_behind_slot_id is None


def plan_slot(
    db: Session,
    region_id: int,
    region_cap: int,
    duration: timedelta = FEATURED_SLOT_DURATION,
    now: datetime | None = None,
) -> SlotPlan:
    """Next available window in the region under FIFO backfill. Always returns a window while region_cap > 0."""
    now = now or utc_now()
    if region_cap <= 0:
        raise RegionCapExceeded(region_id, region_cap)
    slots = occupying_slots(db, region_id, now)
    if len(slots) < region_cap:
        return SlotPlan(region_id=region_id, start_time=now, end_time=now + duration)
    behind = slots[len(slots) - region_cap]
    start = as_utc(behind.end_time) + FEATURED_SLOT_BUFFER
    return SlotPlan(region_id=region_id, start_time=start, end_time=start + duration, queued_behind_slot_id=behind.id)


def insert_planned_slot(
    db: Session,
    plan: SlotPlan,
    *,
    vendor_id: str,
    business_profile_id: str,
    region_label: str | None,
    region_cap: int,
    vendor_cap: int,
    now: datetime | None = None,
) -> FeaturedSlot:
    """
    Atomic capacity re-check + insert. Raises RegionCapExceeded / VendorCapExceeded when a
    concurrent reservation committed first; the caller re-plans rather than retrying the same plan.
    """
    now = now or utc_now()
    with unit_of_work(db):
        region = db.query(Region).filter(Region.id == plan.region_id).with_for_update().one_or_none()
        if region is None:
            raise NotFound(f"Region {plan.region_id} not found")
        vendor = db.query(Vendor).filter(Vendor.id == vendor_id).with_for_update().one_or_none()
        if vendor is None:
            raise NotFound(f"Vendor {vendor_id} not found")

        existing = occupying_slots(db, plan.region_id, now)
        if peak_occupancy(existing, plan.start_time, plan.end_time) >= region_cap:
            raise RegionCapExceeded(plan.region_id, region_cap)
        if vendor_slot_count(db, vendor_id, now) >= vendor_cap:
            raise VendorCapExceeded(vendor_id, vendor_cap)

        slot = FeaturedSlot(
            vendor_id=vendor_id,
            business_profile_id=business_profile_id,
            region_id=plan.region_id,
            region_label=region_label,
            start_time=plan.start_time,
            end_time=plan.end_time,
            status=SLOT_SCHEDULED,
            charged_amount_cents=0,
        )
        db.add(slot)
        db.flush()
    logger.info(
        "Reserved featured slot %s vendor=%s region=%s start=%s end=%s",
        slot.id, vendor_id, plan.region_id, plan.start_time.isoformat(), plan.end_time.isoformat(),
    )
    return slot


def reserve_slot(
    db: Session,
    *,
    vendor_id: str,
    business_profile_id: str,
    region_id: int,
    region_label: str | None,
    region_cap: int,
    vendor_cap: int,
    duration: timedelta = FEATURED_SLOT_DURATION,
    now: datetime | None = None,
) -> FeaturedSlot:
    """Plan the next window and reserve it. Returns the inserted 'scheduled' slot."""
    now = now or utc_now()
    plan = plan_slot(db, region_id, region_cap, duration=duration, now=now)
    return insert_planned_slot(
        db,
        plan,
        vendor_id=vendor_id,
        business_profile_id=business_profile_id,
        region_label=region_label,
        region_cap=region_cap,
        vendor_cap=vendor_cap,
        now=now,
    )


def cancel_reserved_slot(db: Session, slot_id: int) -> bool:
    """Release a reservation that never reached payment. Only 'scheduled' slots are cancelled."""
    with unit_of_work(db):
        updated = (
            db.query(FeaturedSlot)
            .filter(FeaturedSlot.id == slot_id, FeaturedSlot.status == SLOT_SCHEDULED)
            .update({FeaturedSlot.status: SLOT_CANCELLED}, synchronize_session=False)
        )
    if updated:
        logger.info("Cancelled reserved featured slot %s", slot_id)
    return bool(updated)


def list_vendor_slots(db: Session, vendor_id: str, now: datetime | None = None) -> list[FeaturedSlot]:
    """Vendor's current and upcoming slots (not ended), earliest start first."""
    now = now or utc_now()
    return (
        db.query(FeaturedSlot)
        .filter(
            FeaturedSlot.vendor_id == vendor_id,
            FeaturedSlot.status.in_(OCCUPYING_SLOT_STATUSES),
            FeaturedSlot.end_time > now,
        )
        .order_by(FeaturedSlot.start_time.asc(), FeaturedSlot.id.asc())
        .all()
    )
