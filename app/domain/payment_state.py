"""Payment state machine."""

from app.core.exceptions import ValidationError

PENDING = "pending"
PENDING_VERIFICATION = "pending_verification"
PAID = "paid"
FAILED = "failed"
REFUNDED = "refunded"

PAYMENT_TRANSITIONS = {
    PENDING: {PENDING_VERIFICATION, PAID, FAILED},
    PENDING_VERIFICATION: {PAID, FAILED},
    # A failed attempt can be retried with any method
    FAILED: {PENDING, PENDING_VERIFICATION, PAID},
    PAID: {REFUNDED},
    REFUNDED: set(),
}

CASH = "cash"
CREDIT_CARD = "credit_card"
BANK_TRANSFER = "bank_transfer"
PAYPAL = "paypal"

PAYMENT_METHODS = (CASH, CREDIT_CARD, BANK_TRANSFER, PAYPAL)

# Methods that settle immediately through an online gateway
GATEWAY_METHODS = {CREDIT_CARD: "stripe", PAYPAL: "paypal"}

# Methods an admin confirms by hand
OFFLINE_METHODS = (CASH, BANK_TRANSFER)

# Money has been submitted or received for the booking
MONEY_HELD_STATUSES = (PENDING_VERIFICATION, PAID)


def is_valid_payment_transition(current: str, target: str) -> bool:
    return target in PAYMENT_TRANSITIONS.get(current, set())


def assert_payment_transition(current: str, target: str) -> None:
    if not is_valid_payment_transition(current, target):
        raise ValidationError(
            f"Invalid payment transition: {current} → {target}",
            code="INVALID_PAYMENT_TRANSITION",
        )


def gateway_for_method(method: str) -> str:
    return GATEWAY_METHODS.get(method, "manual")
