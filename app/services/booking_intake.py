"""Customer booking intake.

Validates a booking request against the service catalog, stores the
request with an empty, unlocked price and lets admins know it arrived.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import RateLimitExceeded, ValidationError
from app.domain.booking_state import DRAFT, UNDER_REVIEW
from app.domain.payment_state import PENDING
from app.models.booking import Booking, BookingPrice, BookingStatusHistory, BookingUserInput
from app.models.service import Service
from app.models.user import User
from app.schemas.booking import BookingCreate
from app.services.audit_service import audit_service
from app.services.notification_service import notification_service
from app.utils.booking_number import generate_booking_number
from app.utils.validators import find_date_error, is_missing

logger = logging.getLogger(__name__)


async def _find_recent_duplicate(
    db: AsyncSession, user: User, service_type: str
) -> Booking | None:
    """Same customer, same service type, inside the duplicate window."""
    since = datetime.now(UTC) - timedelta(seconds=settings.duplicate_booking_window_seconds)
    result = await db.execute(
        select(Booking)
        .where(
            Booking.user_id == user.id,
            Booking.service_type == service_type,
            Booking.created_at >= since,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


def _check_required_inputs(service: Service, details: dict) -> None:
    for field in service.inputs:
        if field.is_required and is_missing(details.get(field.key)):
            raise ValidationError(f"{field.label} is required")


async def create_booking(db: AsyncSession, user: User, data: BookingCreate) -> Booking:
    """Create a booking from a customer request.

    Args:
        db: Database session
        user: Customer placing the booking
        data: Validated booking request

    Returns:
        Booking: New booking in ``under_review`` (or ``draft``)

    Raises:
        ValidationError: Inactive service, missing required field or bad dates
        RateLimitExceeded: Same request submitted moments ago
    """
    details = dict(data.service_details)

    result = await db.execute(select(Service).where(Service.service_type == data.service_type))
    service = result.scalar_one_or_none()
    if service is None:
        logger.warning(f"Booking for unknown service type '{data.service_type}' accepted as custom")
    elif not service.is_active:
        raise ValidationError("This service is currently unavailable")
    else:
        _check_required_inputs(service, details)

    date_error = find_date_error(details, datetime.now(UTC).date())
    if date_error:
        raise ValidationError(date_error)

    if await _find_recent_duplicate(db, user, data.service_type):
        raise RateLimitExceeded(
            "A similar booking was recently submitted. Please wait before trying again."
        )

    if service is not None:
        details["_service_snapshot"] = {
            "id": str(service.id),
            "name": service.name,
            "service_type": service.service_type,
        }

    info = data.user_info
    currency = (data.currency or settings.default_currency).upper()
    status = DRAFT if data.as_draft else UNDER_REVIEW

    booking = Booking(
        booking_number=await generate_booking_number(db),
        user_id=user.id,
        service_id=service.id if service else None,
        service_type=data.service_type,
        service_details=details,
        user_info={
            "full_name": info.full_name,
            "email": info.email or user.email,
            "phone": info.phone,
            "language": info.language,
        },
        customer_notes=data.customer_notes,
        status=status,
        payment_status=PENDING,
    )
    booking.price = BookingPrice(admin_price=None, tax=0, locked=False, currency=currency)
    db.add(booking)
    await db.flush()

    for key, value in details.items():
        if key.startswith("_"):
            continue
        db.add(BookingUserInput(booking_id=booking.id, input_key=key, value=str(value)))

    db.add(
        BookingStatusHistory(
            booking_id=booking.id,
            old_status=None,
            new_status=status,
            changed_by=user.id,
            changed_by_role=user.role,
            notes="Booking created by customer",
        )
    )

    if status == UNDER_REVIEW:
        await notification_service.notify_admins(
            db,
            notification_service.NEW_BOOKING,
            title="New booking",
            body=f"New {data.service_type} booking from {info.full_name}",
            booking_id=booking.id,
        )

    await audit_service.log_booking_action(
        db,
        user,
        "booking_created",
        booking.id,
        new_status=status,
        service_type=data.service_type,
    )
    await db.flush()

    logger.info(f"Booking {booking.booking_number} created by user {user.id} ({status})")
    return booking
