"""Append-only commission ledger."""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.db.base import Base


class TransactionLog(Base):
    __tablename__ = "transactions_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(32), nullable=False)  # commission_deducted
    vendor_id = Column(String(36), nullable=True, index=True)
    amount_cents = Column(Integer, nullable=False)
    payment_reference = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
