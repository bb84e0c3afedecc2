"""Payment guard: is a booking payable right now, and for how much.

The amount a customer pays is always derived from the admin-set booking
price (``admin_price + tax``). Callers never supply it.
"""

from dataclasses import dataclass
from typing import Protocol

from app.core.exceptions import InvalidBookingStatus, PriceLockError
from app.domain import booking_state, payment_state


class _BookingLike(Protocol):
    status: str
    payment_status: str


class _PriceLike(Protocol):
    admin_price: int | None
    tax: int
    currency: str
    locked: bool


@dataclass(frozen=True)
class PaymentGuard:
    """Derived payability view of a booking."""

    can_pay: bool
    subtotal: int
    tax: int
    amount: int
    currency: str | None
    locked: bool
    reason: str | None = None
    code: str | None = None


def evaluate_payment_guard(booking: _BookingLike, price: _PriceLike | None) -> PaymentGuard:
    """Evaluate the guard rules in order; the first failing rule wins."""
    subtotal = price.admin_price or 0 if price else 0
    tax = price.tax or 0 if price else 0
    currency = price.currency if price else None
    locked = bool(price and price.locked)

    def blocked(reason: str, code: str) -> PaymentGuard:
        return PaymentGuard(
            can_pay=False,
            subtotal=subtotal,
            tax=tax,
            amount=subtotal + tax if subtotal > 0 else 0,
            currency=currency,
            locked=locked,
            reason=reason,
            code=code,
        )

    if subtotal <= 0:
        return blocked("Price has not been set by admin yet.", "PRICE_NOT_SET")
    if not locked:
        return blocked("Price is not locked. Please wait for admin to finalize.", "PRICE_NOT_LOCKED")
    if booking.payment_status == payment_state.PAID:
        return blocked("Booking is already paid", "ALREADY_PAID")
    if booking.payment_status == payment_state.PENDING_VERIFICATION:
        return blocked("Payment is awaiting verification", "PAYMENT_PENDING_VERIFICATION")

    status = booking_state.normalize_status(booking.status)
    if status == booking_state.AWAITING_CUSTOMER_CONFIRMATION:
        return blocked("Please confirm the booking price first.", "CONFIRMATION_REQUIRED")
    if status != booking_state.AWAITING_PAYMENT:
        return blocked(f"Cannot pay for booking in '{booking.status}' status.", "INVALID_STATUS")

    return PaymentGuard(
        can_pay=True,
        subtotal=subtotal,
        tax=tax,
        amount=subtotal + tax,
        currency=currency,
        locked=True,
    )


def assert_payable(guard: PaymentGuard) -> None:
    """Raise the error matching the first failed guard rule."""
    if guard.can_pay:
        return
    if guard.code in ("PRICE_NOT_SET", "PRICE_NOT_LOCKED"):
        raise PriceLockError(guard.reason or "Price is not ready", code=guard.code)
    raise InvalidBookingStatus(guard.reason or "Booking is not payable", code=guard.code or "INVALID_STATUS")
