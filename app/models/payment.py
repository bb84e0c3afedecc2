"""Payment-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base, JSONVariant, utcnow

if TYPE_CHECKING:
    from app.models.booking import Booking
    from app.models.user import User


class Payment(Base):
    """One payment attempt against a booking."""

    __tablename__ = "payments"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payments_amount_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    # Amount
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units
    currency: Mapped[str] = mapped_column(String(3), default="RUB")
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 6))

    # Method
    payment_method: Mapped[str] = mapped_column(
        String(30), nullable=False
    )  # cash, credit_card, bank_transfer, paypal
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    receipt_url: Mapped[str | None] = mapped_column(Text)

    # Gateway
    gateway: Mapped[str] = mapped_column(String(30), default="manual")  # stripe, paypal, manual
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(100), index=True)
    gateway_response: Mapped[dict | None] = mapped_column(JSONVariant)

    # Status
    status: Mapped[str] = mapped_column(
        String(30), default="pending"
    )  # pending, pending_verification, paid, failed, refunded
    failure_reason: Mapped[str | None] = mapped_column(Text)

    # Verification
    verified_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    gateway_refund_id: Mapped[str | None] = mapped_column(String(100))

    # Timestamps
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
