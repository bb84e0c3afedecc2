"""Core utilities and security modules."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    InvalidBookingStatus,
    NotFoundError,
    PaymentError,
    PriceLockError,
    RateLimitExceeded,
    ValidationError,
)
from app.core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
    verify_token,
)

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "ExternalServiceError",
    "InvalidBookingStatus",
    "NotFoundError",
    "PaymentError",
    "PriceLockError",
    "RateLimitExceeded",
    "ValidationError",
    "create_access_token",
    "create_refresh_token",
    "get_password_hash",
    "verify_password",
    "verify_token",
]
