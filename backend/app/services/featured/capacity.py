"""
Capacity ledger: read-only utilization queries over featured_slots.

A slot occupies capacity while status is active or scheduled and end_time > now.
Scheduled slots may start in the future (FIFO backfill), so "occupying" and
"live right now" are different counts.
"""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.clock import as_utc, utc_now
from app.core.constants import FEATURED_SLOT_MAX_PER_REGION, OCCUPYING_SLOT_STATUSES
from app.models.featured_slot import FeaturedSlot
from app.models.region import Region


@dataclass(frozen=True)
class RegionUtilization:
    region_id: int
    slot_cap: int
    live_count: int  # slots whose window contains now
    committed_count: int  # all occupying slots, including future backfill

    @property
    def has_capacity(self) -> bool:
        return self.live_count < self.slot_cap

    def as_dict(self) -> dict:
        return {
            "region_id": self.region_id,
            "slot_cap": self.slot_cap,
            "live_count": self.live_count,
            "committed_count": self.committed_count,
            "has_capacity": self.has_capacity,
        }


def region_slot_cap(region: Region | None) -> int:
    if region is None or region.slot_cap is None:
        return FEATURED_SLOT_MAX_PER_REGION
    return region.slot_cap


def occupying_slots(db: Session, region_id: int, now: datetime | None = None) -> list[FeaturedSlot]:
    """Active/scheduled slots in the region that have not ended, soonest-ending first."""
    now = now or utc_now()
    return (
        db.query(FeaturedSlot)
        .filter(
            FeaturedSlot.region_id == region_id,
            FeaturedSlot.status.in_(OCCUPYING_SLOT_STATUSES),
            FeaturedSlot.end_time > now,
        )
        .order_by(FeaturedSlot.end_time.asc(), FeaturedSlot.id.asc())
        .all()
    )


def vendor_slot_count(db: Session, vendor_id: str, now: datetime | None = None) -> int:
    """Vendor's concurrent featured slots (active or scheduled, not yet ended) across all regions."""
    now = now or utc_now()
    return (
        db.query(FeaturedSlot)
        .filter(
            FeaturedSlot.vendor_id == vendor_id,
            FeaturedSlot.status.in_(OCCUPYING_SLOT_STATUSES),
            FeaturedSlot.end_time > now,
        )
        .count()
    )


def peak_occupancy(slots: list[FeaturedSlot], window_start: datetime, window_end: datetime) -> int:
    """
    Max number of slots simultaneously occupying any instant of [window_start, window_end).
    Concurrency only rises at a slot start, so checking window_start and every start inside
    the window is sufficient.
    """
    window_start = as_utc(window_start)
    window_end = as_utc(window_end)
    spans = [(as_utc(s.start_time), as_utc(s.end_time)) for s in slots]
    spans = [(s, e) for s, e in spans if s < window_end and e > window_start]
    if not spans:
        return 0
    instants = {window_start} | {s for s, _ in spans if s > window_start}
    return max(sum(1 for s, e in spans if s <= t < e) for t in instants)


def region_utilization(db: Session, region_id: int, now: datetime | None = None) -> RegionUtilization:
    now = now or utc_now()
    region = db.get(Region, region_id)
    slots = occupying_slots(db, region_id, now)
    live = sum(1 for s in slots if as_utc(s.start_time) <= now)
    return RegionUtilization(
        region_id=region_id,
        slot_cap=region_slot_cap(region),
        live_count=live,
        committed_count=len(slots),
    )
