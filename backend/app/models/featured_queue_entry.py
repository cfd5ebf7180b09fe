"""Vendor waiting for featured placement in a region with no scheduling path. One row per (vendor, region)."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from app.db.base import Base


class FeaturedQueueEntry(Base):
    __tablename__ = "featured_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False)
    business_profile_id = Column(String(64), nullable=False)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=False, index=True)
    region_label = Column(String(128), nullable=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    status = Column(String(16), nullable=False, server_default="waiting", default="waiting")

    __table_args__ = (UniqueConstraint("vendor_id", "region_id", name="uq_featured_queue_vendor_region"),)
