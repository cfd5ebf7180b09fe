"""Inbound gateway event record. Row insertion is the idempotency reservation.

processed_at NULL = in flight (or orphaned by a crash between admit and complete/release).
payload_summary: sanitized summary only, never the raw payload.
"""
from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.db.base import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_event_id = Column(String(128), nullable=False)
    event_type = Column(String(64), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    payload_summary = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("external_event_id", name="uq_webhook_events_external_event_id"),
        # Stuck reservations are found by age
        Index("ix_webhook_events_unprocessed", "created_at", postgresql_where=text("processed_at IS NULL")),
    )
