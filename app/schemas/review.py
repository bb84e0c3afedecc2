"""Review-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    """Schema for reviewing a completed booking."""

    booking_id: UUID
    overall_rating: int = Field(..., ge=1, le=5)
    driver_rating: int | None = Field(None, ge=1, le=5)
    punctuality_rating: int | None = Field(None, ge=1, le=5)
    communication_rating: int | None = Field(None, ge=1, le=5)
    value_rating: int | None = Field(None, ge=1, le=5)
    feedback_text: str | None = Field(None, max_length=2000)
    positive_aspects: list[str] = Field(default_factory=list, max_length=10)
    improvement_areas: list[str] = Field(default_factory=list, max_length=10)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    user_id: UUID
    driver_id: UUID | None
    guide_id: UUID | None
    service_type: str
    overall_rating: int
    driver_rating: int | None
    punctuality_rating: int | None
    communication_rating: int | None
    value_rating: int | None
    feedback_text: str | None
    positive_aspects: list[str]
    improvement_areas: list[str]
    status: str
    created_at: datetime


class AdminReviewResponse(ReviewResponse):
    """Review with moderation and follow-up details."""

    is_flagged: bool
    flag_reason: str | None
    moderated_by: UUID | None
    moderated_at: datetime | None
    requires_followup: bool
    followup_type: str | None
    followup_completed: bool
    followup_notes: str | None


class ReviewListResponse(BaseModel):
    reviews: list[AdminReviewResponse]
    total: int
    pending_followups: int
    page: int
    page_size: int


class ReviewPromptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    status: str
    scheduled_at: datetime
    sent_at: datetime | None


class ReviewModerationRequest(BaseModel):
    """Schema for admin review moderation."""

    action: str = Field(..., pattern="^(approve|flag|hide)$")
    notes: str | None = Field(None, max_length=500)


class FollowupRequest(BaseModel):
    notes: str = Field(..., min_length=1, max_length=2000)


class StaffRatingStats(BaseModel):
    """Aggregated ratings for one driver or guide."""

    staff_id: UUID
    total_reviews: int
    avg_overall: float
    avg_driver: float | None = None
    avg_punctuality: float | None
    avg_communication: float | None
    low_rating_count: int
    high_rating_count: int
