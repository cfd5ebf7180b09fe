"""
Featured slot expiry reminders: once a day, email vendors whose active slot ends in
7 or 2 days (FEATURED_REMINDER_WINDOWS_DAYS).

A featured_slot_reminders row per (slot, window) is written after each send, so re-running
on the same day sends nothing new. A failed send is logged and retried on the next run that
still matches the window.
"""
import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utc_now
from app.core.constants import FEATURED_REMINDER_WINDOWS_DAYS, SLOT_ACTIVE
from app.db.session import SessionLocal
from app.models.featured_slot import FeaturedSlot
from app.models.featured_slot_reminder import FeaturedSlotReminder
from app.models.vendor import Vendor
from app.services.email_notify import send_featured_expiry_email

logger = logging.getLogger(__name__)


def _day_bounds(day: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(day.date(), time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def send_featured_reminders(db: Session, now: datetime | None = None, send=send_featured_expiry_email) -> dict[str, int]:
    """One pass over every reminder window. Returns counts: processed, sent, skipped, failed."""
    now = now or utc_now()
    counts = {"processed": 0, "sent": 0, "skipped": 0, "failed": 0}
    for days_before in FEATURED_REMINDER_WINDOWS_DAYS:
        day_start, day_end = _day_bounds(now + timedelta(days=days_before))
        rows = (
            db.query(FeaturedSlot, Vendor)
            .join(Vendor, Vendor.id == FeaturedSlot.vendor_id)
            .filter(
                FeaturedSlot.status == SLOT_ACTIVE,
                FeaturedSlot.end_time >= day_start,
                FeaturedSlot.end_time < day_end,
            )
            .order_by(FeaturedSlot.end_time.asc())
            .all()
        )
        for slot, vendor in rows:
            counts["processed"] += 1
            already = (
                db.query(FeaturedSlotReminder.id)
                .filter(FeaturedSlotReminder.slot_id == slot.id, FeaturedSlotReminder.days_before == days_before)
                .first()
            )
            if already:
                counts["skipped"] += 1
                continue
            if not vendor.contact_email:
                logger.warning("Skipping reminder for slot %s: vendor %s has no contact email", slot.id, vendor.id)
                counts["skipped"] += 1
                continue
            sent = send(
                vendor.contact_email,
                vendor.business_name or "Vendor",
                slot.region_label or "your area",
                as_utc(slot.end_time),
                days_before,
            )
            if not sent:
                counts["failed"] += 1
                continue
            db.add(FeaturedSlotReminder(slot_id=slot.id, days_before=days_before, sent_at=now))
            try:
                db.commit()
            except IntegrityError:
                # Another run recorded this reminder between our check and insert
                db.rollback()
                continue
            counts["sent"] += 1
    return counts


def run_featured_reminder_job() -> None:
    db = SessionLocal()
    try:
        counts = send_featured_reminders(db)
        logger.info("Featured reminder job: %s", counts)
    except Exception as e:
        logger.exception("Featured reminder job failed: %s", e)
        db.rollback()
    finally:
        db.close()
