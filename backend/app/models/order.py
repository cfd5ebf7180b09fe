"""Customer order. payment_reference is unique: the idempotency key for financial side effects."""
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from app.db.base import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(64), nullable=True)
    vendor_id = Column(String(36), nullable=True, index=True)
    product_id = Column(String(36), nullable=True)
    amount_cents = Column(Integer, nullable=False)
    commission_cents = Column(Integer, nullable=False)
    vendor_net_cents = Column(Integer, nullable=False)
    payment_reference = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("payment_reference", name="uq_orders_payment_reference"),)
