"""
Event idempotency gate over webhook_events.

admit    - insert the reservation row (unique external_event_id). Exactly one concurrent delivery wins.
complete - stamp processed_at and store the sanitized summary.
release  - delete the row after a processing failure so the gateway's next delivery is treated as new.

A crash between admit and complete/release leaves processed_at NULL and blocks retries of that
event until an operator clears the row (see stale_reservations).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.db.uow import unit_of_work
from app.models.webhook_event import WebhookEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    admitted: bool


def _already_seen(db: Session, external_event_id: str) -> bool:
    return db.query(WebhookEvent.id).filter(WebhookEvent.external_event_id == external_event_id).first() is not None


def admit(db: Session, external_event_id: str, event_type: str) -> Admission:
    if _already_seen(db, external_event_id):
        logger.info("Event %s already seen; skipping", external_event_id)
        return Admission(admitted=False)
    db.add(WebhookEvent(external_event_id=external_event_id, event_type=event_type))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Event %s admitted concurrently by another delivery; skipping", external_event_id)
        return Admission(admitted=False)
    return Admission(admitted=True)


def complete(db: Session, external_event_id: str, summary: dict[str, Any], now: datetime | None = None) -> None:
    with unit_of_work(db):
        db.query(WebhookEvent).filter(WebhookEvent.external_event_id == external_event_id).update(
            {WebhookEvent.processed_at: now or utc_now(), WebhookEvent.payload_summary: summary},
            synchronize_session=False,
        )


def release(db: Session, external_event_id: str) -> None:
    with unit_of_work(db):
        db.query(WebhookEvent).filter(WebhookEvent.external_event_id == external_event_id).delete(
            synchronize_session=False
        )
    logger.info("Released reservation for event %s", external_event_id)


def stale_reservations(db: Session, older_than: timedelta, now: datetime | None = None) -> list[WebhookEvent]:
    """Reservations never completed or released (processed_at NULL) older than the given age."""
    cutoff = (now or utc_now()) - older_than
    return (
        db.query(WebhookEvent)
        .filter(WebhookEvent.processed_at.is_(None), WebhookEvent.created_at < cutoff)
        .order_by(WebhookEvent.created_at.asc())
        .all()
    )
