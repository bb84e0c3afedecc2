"""Booking number and transaction reference generation utilities."""

import random
import string
import time
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


async def generate_booking_number(db: AsyncSession) -> str:
    """Generate a unique booking number in format VS-XXXXXX.

    Args:
        db: Database session for uniqueness check

    Returns:
        str: Unique booking number like 'VS-A3B7K9'
    """
    from app.models.booking import Booking

    chars = string.ascii_uppercase + string.digits
    while True:
        booking_number = "VS-" + "".join(random.choices(chars, k=6))

        result = await db.execute(
            select(Booking.id).where(Booking.booking_number == booking_number)
        )
        if result.scalar_one_or_none() is None:
            return booking_number


def generate_transaction_id(payment_method: str, booking_id: UUID | str) -> str:
    """Generate a payment reference like 'CASH-1718000000000-1a2b3c4d'."""
    timestamp_ms = int(time.time() * 1000)
    return f"{payment_method.upper()}-{timestamp_ms}-{str(booking_id)[:8]}"
