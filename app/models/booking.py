"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base, JSONVariant, utcnow

if TYPE_CHECKING:
    from app.models.payment import Payment
    from app.models.service import Service
    from app.models.user import Driver, Guide, User


class Booking(Base):
    """Booking model."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # VS-XXXXXX
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    service_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("services.id"))
    service_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Customer-supplied data
    service_details: Mapped[dict] = mapped_column(JSONVariant, default=dict)
    user_info: Mapped[dict] = mapped_column(JSONVariant, default=dict)
    customer_notes: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)

    # Status
    status: Mapped[str] = mapped_column(
        String(40), default="under_review", index=True
    )  # draft, under_review, awaiting_customer_confirmation, awaiting_payment, confirmed, paid, in_progress, completed, cancelled, rejected
    payment_status: Mapped[str] = mapped_column(
        String(30), default="pending", index=True
    )  # pending, pending_verification, paid, failed, refunded

    # Payment
    payment_method: Mapped[str | None] = mapped_column(String(30))  # cash, credit_card, bank_transfer, paypal
    transaction_id: Mapped[str | None] = mapped_column(String(100))
    requires_verification: Mapped[bool] = mapped_column(Boolean, default=False)
    receipt_url: Mapped[str | None] = mapped_column(Text)
    final_paid_amount: Mapped[int | None] = mapped_column(Integer)  # minor units
    payment_currency: Mapped[str | None] = mapped_column(String(3))
    exchange_rate_used: Mapped[Decimal | None] = mapped_column(Numeric(12, 6))

    # Staff assignment
    assigned_driver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("drivers.id", ondelete="SET NULL"), index=True
    )
    driver_response: Mapped[str | None] = mapped_column(String(20))  # pending, accepted, rejected
    driver_response_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    show_driver_to_customer: Mapped[bool] = mapped_column(Boolean, default=False)
    assigned_guide_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("guides.id", ondelete="SET NULL"), index=True
    )
    guide_response: Mapped[str | None] = mapped_column(String(20))
    guide_response_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Cancellation
    cancelled_by: Mapped[str | None] = mapped_column(String(20))  # customer, admin
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="bookings")
    service: Mapped["Service | None"] = relationship("Service")
    price: Mapped["BookingPrice | None"] = relationship(
        "BookingPrice",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    assigned_driver: Mapped["Driver | None"] = relationship("Driver", lazy="selectin")
    assigned_guide: Mapped["Guide | None"] = relationship("Guide", lazy="selectin")
    status_history: Mapped[list["BookingStatusHistory"]] = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingStatusHistory.created_at",
    )
    user_inputs: Mapped[list["BookingUserInput"]] = relationship(
        "BookingUserInput", back_populates="booking", cascade="all, delete-orphan"
    )
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="booking", cascade="all, delete-orphan"
    )


class BookingPrice(Base):
    """Admin-set price for a booking, gated by the lock flag."""

    __tablename__ = "booking_prices"
    __table_args__ = (
        CheckConstraint("admin_price IS NULL OR admin_price > 0", name="ck_booking_prices_admin_price_positive"),
        CheckConstraint("tax >= 0", name="ck_booking_prices_tax_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # Pricing (minor currency units)
    admin_price: Mapped[int | None] = mapped_column(Integer)
    tax: Mapped[int] = mapped_column(Integer, default=0)
    currency: Mapped[str] = mapped_column(String(3), default="RUB")

    # Lock
    locked: Mapped[bool] = mapped_column(Boolean, default=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    locked_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))

    # Negotiation
    customer_proposed_price: Mapped[int | None] = mapped_column(Integer)
    proposed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    proposal_note: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="price")

    @property
    def total(self) -> int:
        """Payable total: admin price plus tax."""
        return (self.admin_price or 0) + (self.tax or 0)


class BookingStatusHistory(Base):
    """Append-only record of booking status changes."""

    __tablename__ = "booking_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status: Mapped[str | None] = mapped_column(String(40))
    new_status: Mapped[str] = mapped_column(String(40), nullable=False)
    changed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    changed_by_role: Mapped[str | None] = mapped_column(String(20))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="status_history")


class BookingUserInput(Base):
    """Answers to the service's input fields, one row per field."""

    __tablename__ = "booking_user_inputs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    input_key: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[str | None] = mapped_column(Text)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="user_inputs")
