"""Pydantic schemas for API validation."""

from app.schemas.booking import (
    BookingCreate,
    BookingDetailResponse,
    BookingResponse,
    SetPriceRequest,
)
from app.schemas.notification import NotificationListResponse, NotificationResponse
from app.schemas.payment import (
    PaymentResponse,
    PreparePaymentResponse,
    ProcessPaymentRequest,
    ProcessPaymentResponse,
)
from app.schemas.service import ServiceResponse
from app.schemas.user import (
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
)

__all__ = [
    "BookingCreate",
    "BookingDetailResponse",
    "BookingResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "PaymentResponse",
    "PreparePaymentResponse",
    "ProcessPaymentRequest",
    "ProcessPaymentResponse",
    "ServiceResponse",
    "SetPriceRequest",
    "TokenResponse",
    "UserCreate",
    "UserLogin",
    "UserResponse",
]
