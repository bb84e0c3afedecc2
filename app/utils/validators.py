"""Custom validation utilities."""

import re
from datetime import date, datetime
from typing import Any

# Service detail fields that must not be in the past
FUTURE_DATE_FIELDS = ("pickupDate", "checkIn", "date", "departureDate", "tourDate", "eventDate")


def parse_detail_date(value: Any) -> date | None:
    """Parse a date from a service detail value.

    Accepts ``date``/``datetime`` objects and ISO strings ("2025-06-01" or
    "2025-06-01T10:00:00Z").

    Args:
        value: Raw value from the booking form

    Returns:
        date | None: Parsed date, or None when the value is not a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def humanize_field(name: str) -> str:
    """'pickupDate' -> 'Pickup Date'."""
    spaced = re.sub(r"([A-Z])", r" \1", name).strip()
    return spaced[:1].upper() + spaced[1:]


def find_date_error(details: dict[str, Any], today: date) -> str | None:
    """Return the first date problem in service details, if any.

    Args:
        details: Service details submitted with the booking
        today: Reference date for "in the past" checks

    Returns:
        str | None: Error message, or None when all dates are acceptable
    """
    for field in FUTURE_DATE_FIELDS:
        parsed = parse_detail_date(details.get(field))
        if parsed and parsed < today:
            return f"{humanize_field(field)} cannot be in the past"

    check_in = parse_detail_date(details.get("checkIn"))
    check_out = parse_detail_date(details.get("checkOut"))
    if check_in and check_out and check_out <= check_in:
        return "Check-out date must be after check-in date"
    return None


def is_missing(value: Any) -> bool:
    """A required form value is missing when empty; zero counts as present."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False
