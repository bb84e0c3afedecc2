"""Booking state machine.

Every status change on a booking goes through ``assert_booking_transition``.
Legacy rows may still carry ``pending`` or ``approved``; they are mapped onto
the current lifecycle before any check.
"""

from app.core.exceptions import InvalidBookingStatus

DRAFT = "draft"
UNDER_REVIEW = "under_review"
AWAITING_CUSTOMER_CONFIRMATION = "awaiting_customer_confirmation"
AWAITING_PAYMENT = "awaiting_payment"
CONFIRMED = "confirmed"
PAID = "paid"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CANCELLED = "cancelled"
REJECTED = "rejected"

BOOKING_TRANSITIONS: dict[str, set[str]] = {
    DRAFT: {UNDER_REVIEW, CANCELLED},
    UNDER_REVIEW: {AWAITING_CUSTOMER_CONFIRMATION, CANCELLED, REJECTED},
    AWAITING_CUSTOMER_CONFIRMATION: {AWAITING_PAYMENT, CANCELLED, REJECTED},
    AWAITING_PAYMENT: {PAID, CONFIRMED, CANCELLED, REJECTED},
    # Cash bookings sit in confirmed until the money is collected
    CONFIRMED: {PAID, IN_PROGRESS, CANCELLED},
    PAID: {IN_PROGRESS, CANCELLED},
    IN_PROGRESS: {COMPLETED, CANCELLED},
    COMPLETED: set(),
    CANCELLED: set(),
    REJECTED: set(),
}

LEGACY_STATUS_MAP = {
    "pending": UNDER_REVIEW,
    "approved": AWAITING_PAYMENT,
}

ALL_STATUSES = frozenset(BOOKING_TRANSITIONS)
FINAL_STATUSES = frozenset({COMPLETED, CANCELLED, REJECTED})
ACTIVE_STATUSES = ALL_STATUSES - FINAL_STATUSES
PRICE_EDITABLE_STATUSES = frozenset({DRAFT, UNDER_REVIEW, AWAITING_CUSTOMER_CONFIRMATION})
PRICE_LOCKED_STATUSES = frozenset({PAID, IN_PROGRESS, COMPLETED})
CUSTOMER_CANCELLABLE_STATUSES = frozenset(
    {DRAFT, UNDER_REVIEW, AWAITING_CUSTOMER_CONFIRMATION, AWAITING_PAYMENT}
)
ASSIGNABLE_STATUSES = frozenset({CONFIRMED, PAID, IN_PROGRESS})

STATUS_LABELS = {
    DRAFT: "Draft",
    UNDER_REVIEW: "Under review",
    AWAITING_CUSTOMER_CONFIRMATION: "Awaiting your confirmation",
    AWAITING_PAYMENT: "Awaiting payment",
    CONFIRMED: "Confirmed",
    PAID: "Paid",
    IN_PROGRESS: "In progress",
    COMPLETED: "Completed",
    CANCELLED: "Cancelled",
    REJECTED: "Rejected",
}


def normalize_status(status: str) -> str:
    return LEGACY_STATUS_MAP.get(status, status)


def is_valid_transition(current: str, target: str) -> bool:
    current = normalize_status(current)
    target = normalize_status(target)
    if current == target:
        return True
    return target in BOOKING_TRANSITIONS.get(current, set())


def get_valid_next_statuses(current: str) -> list[str]:
    return sorted(BOOKING_TRANSITIONS.get(normalize_status(current), set()))


def assert_booking_transition(current: str, target: str) -> None:
    if normalize_status(target) not in ALL_STATUSES:
        raise InvalidBookingStatus(f"Unknown booking status: {target}", code="INVALID_TRANSITION")
    if not is_valid_transition(current, target):
        raise InvalidBookingStatus(
            f"Invalid booking transition: {current} → {target}",
            code="INVALID_TRANSITION",
        )


def is_final_status(status: str) -> bool:
    return normalize_status(status) in FINAL_STATUSES


def is_active_status(status: str) -> bool:
    return normalize_status(status) in ACTIVE_STATUSES


def can_edit_price(status: str) -> bool:
    return normalize_status(status) in PRICE_EDITABLE_STATUSES


def is_price_locked_status(status: str) -> bool:
    return normalize_status(status) in PRICE_LOCKED_STATUSES


def can_customer_cancel(status: str) -> bool:
    return normalize_status(status) in CUSTOMER_CANCELLABLE_STATUSES


def get_status_label(status: str) -> str:
    status = normalize_status(status)
    return STATUS_LABELS.get(status, status.replace("_", " ").capitalize())
