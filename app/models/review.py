"""Trip review models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.database import Base, JSONVariant, utcnow


class Review(Base):
    """Customer review of a completed booking, one per booking.

    The assigned driver and guide are copied from the booking when the
    review is written, so ratings stay attached to the staff who did the trip.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("overall_rating BETWEEN 1 AND 5", name="ck_reviews_overall_rating"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    driver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("drivers.id", ondelete="SET NULL"), index=True
    )
    guide_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("guides.id", ondelete="SET NULL"), index=True
    )
    service_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Ratings (1-5)
    overall_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    driver_rating: Mapped[int | None] = mapped_column(Integer)
    punctuality_rating: Mapped[int | None] = mapped_column(Integer)
    communication_rating: Mapped[int | None] = mapped_column(Integer)
    value_rating: Mapped[int | None] = mapped_column(Integer)

    # Feedback
    feedback_text: Mapped[str | None] = mapped_column(Text)
    positive_aspects: Mapped[list] = mapped_column(JSONVariant, default=list)
    improvement_areas: Mapped[list] = mapped_column(JSONVariant, default=list)

    # Moderation
    status: Mapped[str] = mapped_column(
        String(20), default="pending", index=True
    )  # pending, approved, flagged, hidden
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False)
    flag_reason: Mapped[str | None] = mapped_column(Text)
    moderated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Follow-up on unhappy customers
    requires_followup: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    followup_type: Mapped[str | None] = mapped_column(String(30))  # low_rating
    followup_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    followup_notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class ReviewPrompt(Base):
    """Request for a review, scheduled when a booking completes."""

    __tablename__ = "review_prompts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default="scheduled", index=True
    )  # scheduled, sent, dismissed, completed

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    dismissed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
