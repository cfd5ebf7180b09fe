"""Vendor product listing. Only created_at, published and vendor_id matter to tier enforcement."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.sql import func

from app.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False, index=True)
    title = Column(String(256), nullable=True)
    published = Column(Boolean, nullable=False, server_default="true", default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # FIFO unpublish scans published products oldest-first per vendor
    __table_args__ = (Index("ix_products_vendor_published_created", "vendor_id", "published", "created_at"),)
