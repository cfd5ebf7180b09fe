"""One row per (slot, days_before) expiry reminder sent; makes the reminder job re-runnable."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.sql import func

from app.db.base import Base


class FeaturedSlotReminder(Base):
    __tablename__ = "featured_slot_reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slot_id = Column(Integer, ForeignKey("featured_slots.id"), nullable=False)
    days_before = Column(Integer, nullable=False)
    sent_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("slot_id", "days_before", name="uq_featured_slot_reminders_slot_days"),)
