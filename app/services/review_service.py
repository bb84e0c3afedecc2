"""Customer reviews of completed trips.

A review prompt is scheduled when a booking completes. The customer who
owns the booking can then write one review, which is attributed to the
driver and guide assigned at that time. Low ratings are queued for an
admin follow-up.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import InvalidBookingStatus, NotFoundError, ValidationError
from app.domain import booking_state
from app.models.booking import Booking
from app.models.review import Review, ReviewPrompt
from app.models.user import User
from app.schemas.review import ReviewCreate, StaffRatingStats
from app.services.audit_service import audit_service
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)

# Review statuses
PENDING = "pending"
APPROVED = "approved"
FLAGGED = "flagged"
HIDDEN = "hidden"

# Prompt statuses
SCHEDULED = "scheduled"
SENT = "sent"
DISMISSED = "dismissed"
COMPLETED = "completed"
OPEN_PROMPT_STATUSES = (SCHEDULED, SENT)

MODERATION_ACTIONS = {"approve": APPROVED, "flag": FLAGGED, "hide": HIDDEN}

LOW_RATING = 2
HIGH_RATING = 4


class ReviewService:
    """Review prompts, submissions, moderation and staff rating stats."""

    # ==================== PROMPTS ====================

    async def schedule_prompt(self, db: AsyncSession, booking: Booking) -> ReviewPrompt:
        """Ask the customer for a review once the prompt delay has passed."""
        result = await db.execute(select(ReviewPrompt).where(ReviewPrompt.booking_id == booking.id))
        prompt = result.scalar_one_or_none()
        if prompt:
            return prompt

        prompt = ReviewPrompt(
            booking_id=booking.id,
            user_id=booking.user_id,
            status=SCHEDULED,
            scheduled_at=datetime.now(UTC) + timedelta(hours=settings.review_prompt_delay_hours),
        )
        db.add(prompt)
        return prompt

    async def pending_prompts(self, db: AsyncSession, user: User) -> list[ReviewPrompt]:
        """Prompts that are due. Scheduled ones are marked as sent."""
        now = datetime.now(UTC)
        result = await db.execute(
            select(ReviewPrompt)
            .where(
                ReviewPrompt.user_id == user.id,
                ReviewPrompt.status.in_(OPEN_PROMPT_STATUSES),
                ReviewPrompt.scheduled_at <= now,
            )
            .order_by(ReviewPrompt.scheduled_at)
        )
        prompts = list(result.scalars().all())
        for prompt in prompts:
            if prompt.status == SCHEDULED:
                prompt.status = SENT
                prompt.sent_at = now
        return prompts

    async def dismiss_prompt(self, db: AsyncSession, user: User, prompt_id: UUID) -> ReviewPrompt:
        result = await db.execute(
            select(ReviewPrompt).where(ReviewPrompt.id == prompt_id, ReviewPrompt.user_id == user.id)
        )
        prompt = result.scalar_one_or_none()
        if not prompt:
            raise NotFoundError("Review prompt", str(prompt_id))
        if prompt.status not in OPEN_PROMPT_STATUSES:
            raise ValidationError(f"Review prompt is already {prompt.status}", code="PROMPT_CLOSED")

        prompt.status = DISMISSED
        prompt.dismissed_at = datetime.now(UTC)
        return prompt

    # ==================== SUBMISSION ====================

    async def submit_review(self, db: AsyncSession, user: User, data: ReviewCreate) -> Review:
        """Review a completed booking owned by ``user``.

        Raises:
            NotFoundError: Booking does not exist or belongs to someone else
            InvalidBookingStatus: Booking is not completed
            ValidationError: Booking already has a review
        """
        result = await db.execute(
            select(Booking).where(Booking.id == data.booking_id, Booking.user_id == user.id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(data.booking_id))
        if booking_state.normalize_status(booking.status) != booking_state.COMPLETED:
            raise InvalidBookingStatus("Only completed bookings can be reviewed", code="BOOKING_NOT_COMPLETED")

        existing = await db.execute(select(Review.id).where(Review.booking_id == booking.id))
        if existing.scalar_one_or_none():
            raise ValidationError("You have already reviewed this booking", code="REVIEW_EXISTS")

        low_rating = data.overall_rating <= LOW_RATING
        review = Review(
            booking_id=booking.id,
            user_id=user.id,
            driver_id=booking.assigned_driver_id,
            guide_id=booking.assigned_guide_id,
            service_type=booking.service_type,
            overall_rating=data.overall_rating,
            # A driver rating only counts when a driver did the trip
            driver_rating=data.driver_rating if booking.assigned_driver_id else None,
            punctuality_rating=data.punctuality_rating,
            communication_rating=data.communication_rating,
            value_rating=data.value_rating,
            feedback_text=data.feedback_text,
            positive_aspects=data.positive_aspects,
            improvement_areas=data.improvement_areas,
            status=PENDING,
            requires_followup=low_rating,
            followup_type="low_rating" if low_rating else None,
        )
        db.add(review)

        prompt_result = await db.execute(
            select(ReviewPrompt).where(ReviewPrompt.booking_id == booking.id)
        )
        prompt = prompt_result.scalar_one_or_none()
        if prompt:
            prompt.status = COMPLETED
            prompt.completed_at = datetime.now(UTC)

        await db.flush()
        await audit_service.log_booking_action(
            db, user, "review_submitted", booking.id, rating=data.overall_rating
        )
        if low_rating:
            logger.info(f"Booking {booking.booking_number} rated {data.overall_rating}, follow-up queued")
            await notification_service.notify_admins(
                db,
                notification_service.REVIEW_NEEDS_FOLLOWUP,
                title="Low rating received",
                body=f"Booking #{booking.booking_number} was rated {data.overall_rating}/5",
                booking_id=booking.id,
            )
        return review

    async def list_user_reviews(self, db: AsyncSession, user: User) -> list[Review]:
        result = await db.execute(
            select(Review).where(Review.user_id == user.id).order_by(Review.created_at.desc())
        )
        return list(result.scalars().all())

    # ==================== ADMIN ====================

    async def get_review(self, db: AsyncSession, review_id: UUID) -> Review:
        result = await db.execute(select(Review).where(Review.id == review_id))
        review = result.scalar_one_or_none()
        if not review:
            raise NotFoundError("Review", str(review_id))
        return review

    async def list_reviews(
        self,
        db: AsyncSession,
        status: str | None = None,
        flagged: bool | None = None,
        service_type: str | None = None,
        needs_followup: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Review], int, int]:
        """Filtered reviews, their total and the number of open follow-ups."""
        query = select(Review)
        if status:
            query = query.where(Review.status == status)
        if flagged is not None:
            query = query.where(Review.is_flagged == flagged)
        if service_type:
            query = query.where(Review.service_type == service_type)
        if needs_followup:
            query = query.where(
                Review.requires_followup == True,  # noqa: E712
                Review.followup_completed == False,  # noqa: E712
            )

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        followup_result = await db.execute(
            select(func.count()).select_from(Review).where(
                Review.requires_followup == True,  # noqa: E712
                Review.followup_completed == False,  # noqa: E712
            )
        )
        pending_followups = followup_result.scalar() or 0

        result = await db.execute(
            query.order_by(Review.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        )
        return list(result.scalars().all()), total, pending_followups

    async def moderate_review(
        self, db: AsyncSession, admin: User, review_id: UUID, action: str, notes: str | None = None
    ) -> Review:
        """Approve, flag or hide a review."""
        review = await self.get_review(db, review_id)
        old_status = review.status
        flagged = action == "flag"

        review.status = MODERATION_ACTIONS[action]
        review.moderated_by = admin.id
        review.moderated_at = datetime.now(UTC)
        review.is_flagged = flagged
        review.flag_reason = (notes or "Manually flagged by admin") if flagged else None

        await audit_service.log_action(
            db,
            admin,
            f"review_{review.status}",
            "review",
            review.id,
            old_values={"status": old_status},
            new_values={"status": review.status, "notes": notes},
        )
        return review

    async def complete_followup(
        self, db: AsyncSession, admin: User, review_id: UUID, notes: str
    ) -> Review:
        review = await self.get_review(db, review_id)
        if not review.requires_followup:
            raise ValidationError("Review does not need a follow-up", code="NO_FOLLOWUP")
        if review.followup_completed:
            raise ValidationError("Follow-up already completed", code="FOLLOWUP_COMPLETED")

        review.followup_completed = True
        review.followup_notes = notes
        await audit_service.log_action(
            db, admin, "review_followup_completed", "review", review.id, new_values={"notes": notes}
        )
        return review

    # ==================== STATS ====================

    async def rating_stats(
        self, db: AsyncSession, role: str, staff_id: UUID | None = None
    ) -> list[StaffRatingStats]:
        """Per driver or per guide rating aggregates. Hidden reviews are excluded."""
        column = Review.driver_id if role == "driver" else Review.guide_id
        query = (
            select(
                column,
                func.count(Review.id),
                func.avg(Review.overall_rating),
                func.avg(Review.driver_rating),
                func.avg(Review.punctuality_rating),
                func.avg(Review.communication_rating),
                func.sum(case((Review.overall_rating <= LOW_RATING, 1), else_=0)),
                func.sum(case((Review.overall_rating >= HIGH_RATING, 1), else_=0)),
            )
            .where(column.is_not(None), Review.status != HIDDEN)
            .group_by(column)
        )
        if staff_id:
            query = query.where(column == staff_id)

        result = await db.execute(query)
        return [
            StaffRatingStats(
                staff_id=row_id,
                total_reviews=total,
                avg_overall=round(float(overall), 2),
                avg_driver=_rounded(driver) if role == "driver" else None,
                avg_punctuality=_rounded(punctuality),
                avg_communication=_rounded(communication),
                low_rating_count=low or 0,
                high_rating_count=high or 0,
            )
            for row_id, total, overall, driver, punctuality, communication, low, high in result.all()
        ]


def _rounded(value) -> float | None:
    return round(float(value), 2) if value is not None else None


review_service = ReviewService()
