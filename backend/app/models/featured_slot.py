"""Time-bounded paid featured placement for one vendor in one region.

Created 'scheduled' by the reservation; flipped to 'active' by the payment event. Never flipped
to 'expired' here: read paths filter on end_time > now instead.
"""
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from app.db.base import Base


class FeaturedSlot(Base):
    __tablename__ = "featured_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False, index=True)
    business_profile_id = Column(String(64), nullable=False)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=False)
    region_label = Column(String(128), nullable=True)  # suburb shown on the placement
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, server_default="scheduled", default="scheduled")
    payment_reference = Column(String(128), nullable=True)
    charged_amount_cents = Column(Integer, nullable=False, server_default="0", default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_featured_slots_region_status_end", "region_id", "status", "end_time"),
        CheckConstraint("status IN ('scheduled', 'active', 'expired', 'cancelled')", name="ck_featured_slots_status"),
        CheckConstraint("end_time > start_time", name="ck_featured_slots_window"),
    )
