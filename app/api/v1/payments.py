"""Customer payment endpoints.

Amounts are never taken from the request; they come from the booking's
locked price.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_customer, get_current_user, get_db
from app.core.middleware import payment_limiter
from app.models.payment import Payment
from app.models.user import User
from app.schemas.payment import (
    GatewayCheckoutRequest,
    GatewayCheckoutResponse,
    PaymentResponse,
    PreparePaymentResponse,
    ProcessPaymentRequest,
    ProcessPaymentResponse,
)
from app.services.payment_service import payment_service

router = APIRouter()


@router.get("/prepare/{booking_id}", response_model=PreparePaymentResponse)
async def prepare_payment(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PreparePaymentResponse:
    """Payment guard and available payment methods for a booking."""
    return await payment_service.prepare_payment(db, current_user, booking_id)


@router.post(
    "/checkout/{method}",
    response_model=GatewayCheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(payment_limiter)],
)
async def create_checkout(
    request: GatewayCheckoutRequest,
    method: Annotated[str, Path(pattern="^(credit_card|paypal)$")],
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> GatewayCheckoutResponse:
    """Start an online payment: Stripe PaymentIntent or PayPal order."""
    return await payment_service.create_checkout(db, current_user, request.booking_id, method)


@router.post(
    "/process",
    response_model=ProcessPaymentResponse,
    dependencies=[Depends(payment_limiter)],
)
async def process_payment(
    request: ProcessPaymentRequest,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProcessPaymentResponse:
    """Submit a payment with the chosen method."""
    return await payment_service.process_payment(db, current_user, request)


@router.get("/booking/{booking_id}", response_model=list[PaymentResponse])
async def list_booking_payments(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[Payment]:
    """Payment attempts for a booking (owner or admin)."""
    return await payment_service.list_booking_payments(db, current_user, booking_id)
