"""
SQLAlchemy ORM models for the EV Rental order core.

Tables:
    payment_callbacks — confirmed gateway callbacks, one row per
                        (gateway, transaction reference); the dedupe key
                        that makes redirect redelivery harmless
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint

from database import Base


class PaymentCallbackRecord(Base):
    """A gateway callback whose deposit confirmation reached the rental backend."""
    __tablename__ = "payment_callbacks"
    __table_args__ = (
        UniqueConstraint("gateway", "txn_ref", name="uq_payment_callback_gateway_txn"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    gateway = Column(String(20), nullable=False)  # "vnpay" | "momo"
    txn_ref = Column(String(128), nullable=False, index=True)
    result_code = Column(String(16), nullable=False)
    order_id = Column(Integer, nullable=True, index=True)
    message = Column(Text, nullable=True)
    auto_advanced = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
