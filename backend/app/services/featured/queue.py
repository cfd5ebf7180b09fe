"""
Waiting queue for regions with no scheduling path.

Join is idempotent per (vendor, region). Position is a live rank query, never stored:
1 + waiting entries in the same region that joined earlier.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.constants import QUEUE_WAITING
from app.models.featured_queue_entry import FeaturedQueueEntry

logger = logging.getLogger(__name__)


def _find_entry(db: Session, vendor_id: str, region_id: int) -> FeaturedQueueEntry | None:
    return (
        db.query(FeaturedQueueEntry)
        .filter(FeaturedQueueEntry.vendor_id == vendor_id, FeaturedQueueEntry.region_id == region_id)
        .first()
    )


def join_queue(
    db: Session,
    *,
    vendor_id: str,
    business_profile_id: str,
    region_id: int,
    region_label: str | None,
    now: datetime | None = None,
) -> FeaturedQueueEntry:
    """Return the vendor's entry for the region, creating it only if none exists."""
    existing = _find_entry(db, vendor_id, region_id)
    if existing:
        return existing
    entry = FeaturedQueueEntry(
        vendor_id=vendor_id,
        business_profile_id=business_profile_id,
        region_id=region_id,
        region_label=region_label,
        joined_at=now or utc_now(),
        status=QUEUE_WAITING,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent join for the same (vendor, region) won the unique constraint
        db.rollback()
        return _find_entry(db, vendor_id, region_id)
    logger.info("Vendor %s joined featured queue for region %s", vendor_id, region_id)
    return entry


def queue_position(db: Session, entry: FeaturedQueueEntry) -> int:
    if entry.joined_at is None:
        return 1
    ahead = (
        db.query(FeaturedQueueEntry)
        .filter(
            FeaturedQueueEntry.region_id == entry.region_id,
            FeaturedQueueEntry.status == QUEUE_WAITING,
            FeaturedQueueEntry.joined_at < entry.joined_at,
        )
        .count()
    )
    return ahead + 1


def list_vendor_queue(db: Session, vendor_id: str) -> list[tuple[FeaturedQueueEntry, int]]:
    """Vendor's queue entries with live positions, oldest join first."""
    entries = (
        db.query(FeaturedQueueEntry)
        .filter(FeaturedQueueEntry.vendor_id == vendor_id)
        .order_by(FeaturedQueueEntry.joined_at.asc())
        .all()
    )
    return [(e, queue_position(db, e)) for e in entries]
