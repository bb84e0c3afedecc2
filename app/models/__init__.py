"""Database models."""

from app.models.admin import AuditLog
from app.models.booking import Booking, BookingPrice, BookingStatusHistory, BookingUserInput
from app.models.notification import Notification
from app.models.payment import Payment
from app.models.review import Review, ReviewPrompt
from app.models.service import Service, ServiceInput
from app.models.user import Driver, Guide, User

__all__ = [
    "AuditLog",
    "Booking",
    "BookingPrice",
    "BookingStatusHistory",
    "BookingUserInput",
    "Driver",
    "Guide",
    "Notification",
    "Payment",
    "Review",
    "ReviewPrompt",
    "Service",
    "ServiceInput",
    "User",
]
