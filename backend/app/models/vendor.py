"""Vendor account fields the placement and payment core reads or writes.

tier and dispute_count (plus the suspension fields set on dispute escalation) are the
only columns written by event processing. A self-service tier change also copies the tier's
limits onto product_quota, commission_rate and can_sell_products. Profile CRUD lives elsewhere.
"""
import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from app.db.base import Base


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_name = Column(String(256), nullable=True)
    contact_email = Column(String(256), nullable=True)
    tier = Column(String(16), nullable=False, server_default="basic", default="basic")
    vendor_status = Column(String(16), nullable=False, server_default="active", default="active", index=True)
    commission_rate = Column(Float, nullable=True)  # NULL = DEFAULT_COMMISSION_RATE
    # Copied from TIER_LIMITS on a tier change; NULL until the vendor first changes tier
    product_quota = Column(Integer, nullable=True)
    can_sell_products = Column(Boolean, nullable=True)
    dispute_count = Column(Integer, nullable=False, server_default="0", default=0)
    last_dispute_at = Column(DateTime(timezone=True), nullable=True)
    auto_delisted_until = Column(DateTime(timezone=True), nullable=True)
    suspension_reason = Column(String(256), nullable=True)
    payment_account_id = Column(String(64), nullable=True)
    payment_account_status = Column(String(16), nullable=True)
    onboarding_complete = Column(Boolean, nullable=False, server_default="false", default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("payment_account_id", name="uq_vendors_payment_account_id"),)
