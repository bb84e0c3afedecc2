"""Customer booking endpoints.

Every route delegates to the booking workflow; ownership is enforced there.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_customer, get_db
from app.core.middleware import booking_limiter
from app.domain.payment_guard import evaluate_payment_guard
from app.models.booking import Booking
from app.models.user import User
from app.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingDetailResponse,
    BookingResponse,
    PaymentGuardResponse,
    ProposePriceRequest,
)
from app.services.booking_intake import create_booking as intake_booking
from app.services.booking_workflow import booking_workflow

router = APIRouter()


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_limiter)],
)
async def create_booking(
    booking_data: BookingCreate,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Submit a booking request (or save it as a draft)."""
    return await intake_booking(db, current_user, booking_data)


@router.get("/", response_model=list[BookingResponse])
async def get_my_bookings(
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=100),
) -> list[Booking]:
    """Bookings of the current customer, newest first."""
    return await booking_workflow.list_customer_bookings(db, current_user, status_filter, limit)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingDetailResponse:
    """Booking with staff contacts, recent history and payability."""
    booking = await booking_workflow.get_customer_booking(db, current_user, booking_id)
    return await booking_workflow.build_detail(db, booking)


@router.get("/{booking_id}/payment-guard", response_model=PaymentGuardResponse)
async def get_payment_guard(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PaymentGuardResponse:
    booking = await booking_workflow.get_customer_booking(db, current_user, booking_id)
    return PaymentGuardResponse.model_validate(evaluate_payment_guard(booking, booking.price))


@router.post("/{booking_id}/submit", response_model=BookingResponse)
async def submit_draft(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Send a draft booking for admin review."""
    return await booking_workflow.submit_draft(db, current_user, booking_id)


@router.post("/{booking_id}/confirm-price", response_model=BookingResponse)
async def confirm_price(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Accept the locked price; the booking moves to awaiting payment."""
    return await booking_workflow.confirm_price(db, current_user, booking_id)


@router.post("/{booking_id}/propose-price", response_model=BookingResponse)
async def propose_price(
    booking_id: UUID,
    request: ProposePriceRequest,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Counter-offer a different price."""
    return await booking_workflow.propose_price(
        db, current_user, booking_id, request.amount, request.note
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancelRequest,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Cancel a booking that has not been paid or started."""
    return await booking_workflow.cancel_booking(db, current_user, booking_id, request.reason)
