"""Driver and guide assignment responses."""

from app.core.exceptions import InvalidBookingStatus

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"

RESPONSE_TRANSITIONS = {
    PENDING: {ACCEPTED, REJECTED},
    ACCEPTED: set(),
    REJECTED: set(),
}

STAFF_ACTIVE = "active"
STAFF_STATUSES = ("active", "inactive", "suspended")


def assert_response_transition(current: str | None, target: str) -> None:
    allowed = RESPONSE_TRANSITIONS.get(current or "", set())
    if target not in allowed:
        raise InvalidBookingStatus(
            f"Cannot change assignment response: {current or 'none'} → {target}",
            code="INVALID_ASSIGNMENT_RESPONSE",
        )
