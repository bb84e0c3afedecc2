"""Booking payments.

The payable amount always comes from the booking's locked price via the
payment guard. Online methods (card, PayPal) are verified with the gateway
before anything is marked paid; offline methods (cash, bank transfer) wait
for an admin.
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import InvalidBookingStatus, NotFoundError, PaymentError
from app.domain import booking_state, payment_state
from app.domain.payment_guard import assert_payable, evaluate_payment_guard
from app.gateways.base import to_major_units
from app.models.booking import Booking
from app.models.payment import Payment
from app.models.user import User
from app.schemas.booking import PaymentGuardResponse
from app.schemas.payment import (
    GatewayCheckoutResponse,
    PaymentMethodInfo,
    PreparePaymentResponse,
    ProcessPaymentRequest,
    ProcessPaymentResponse,
)
from app.services.audit_service import audit_service
from app.services.booking_workflow import booking_workflow
from app.services.gateway_service import gateway_service
from app.services.notification_service import notification_service
from app.utils.booking_number import generate_transaction_id

logger = logging.getLogger(__name__)

# payment method -> (payment_status, booking status, requires_verification)
METHOD_EFFECTS = {
    payment_state.CASH: (payment_state.PENDING, booking_state.CONFIRMED, False),
    payment_state.CREDIT_CARD: (payment_state.PAID, booking_state.PAID, False),
    payment_state.PAYPAL: (payment_state.PAID, booking_state.PAID, False),
    payment_state.BANK_TRANSFER: (
        payment_state.PENDING_VERIFICATION,
        booking_state.AWAITING_PAYMENT,
        True,
    ),
}

METHOD_MESSAGES = {
    payment_state.CASH: "Booking confirmed. Please pay in cash at the time of service.",
    payment_state.CREDIT_CARD: "Payment successful",
    payment_state.PAYPAL: "Payment successful",
    payment_state.BANK_TRANSFER: "Payment submitted. We will verify your transfer shortly.",
}

METHOD_LABELS = {
    payment_state.CASH: "Cash",
    payment_state.CREDIT_CARD: "Credit card",
    payment_state.PAYPAL: "PayPal",
    payment_state.BANK_TRANSFER: "Bank transfer",
}


def _money(amount: int, currency: str | None) -> str:
    return f"{to_major_units(amount)} {currency or settings.default_currency}"


class PaymentService:
    """Checkout, payment submission and admin payment handling."""

    def enabled_methods(self) -> list[str]:
        methods = [payment_state.CASH, payment_state.BANK_TRANSFER]
        if settings.stripe_secret_key:
            methods.append(payment_state.CREDIT_CARD)
        if settings.paypal_client_id and settings.paypal_client_secret:
            methods.append(payment_state.PAYPAL)
        return methods

    async def _latest_payment(
        self,
        db: AsyncSession,
        booking_id: UUID,
        statuses: tuple[str, ...],
        methods: tuple[str, ...] | None = None,
    ) -> Payment | None:
        query = select(Payment).where(Payment.booking_id == booking_id, Payment.status.in_(statuses))
        if methods:
            query = query.where(Payment.payment_method.in_(methods))
        result = await db.execute(query.order_by(Payment.created_at.desc()).limit(1))
        return result.scalar_one_or_none()

    async def _payment_by_reference(self, db: AsyncSession, reference: str) -> Payment | None:
        result = await db.execute(
            select(Payment).where(Payment.gateway_transaction_id == reference).limit(1)
        )
        return result.scalar_one_or_none()

    # ==================== CUSTOMER ====================

    async def prepare_payment(
        self, db: AsyncSession, user: User, booking_id: UUID
    ) -> PreparePaymentResponse:
        """Payment guard and the methods the customer can choose from."""
        booking = await booking_workflow.get_customer_booking(db, user, booking_id)
        guard = evaluate_payment_guard(booking, booking.price)

        methods = []
        for method in self.enabled_methods():
            instructions = None
            if method == payment_state.BANK_TRANSFER and guard.can_pay:
                result = await gateway_service.create_payment(
                    "manual",
                    amount=guard.amount,
                    currency=guard.currency or settings.default_currency,
                    reference_id=booking.booking_number,
                    description=f"Booking {booking.booking_number}",
                )
                instructions = (result.raw_response or {}).get("instructions")
            methods.append(
                PaymentMethodInfo(
                    method=method,
                    label=METHOD_LABELS[method],
                    requires_verification=METHOD_EFFECTS[method][2],
                    instructions=instructions,
                )
            )

        return PreparePaymentResponse(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            guard=PaymentGuardResponse.model_validate(guard),
            payment_methods=methods,
        )

    async def create_checkout(
        self, db: AsyncSession, user: User, booking_id: UUID, method: str
    ) -> GatewayCheckoutResponse:
        """Open a Stripe PaymentIntent or PayPal order for the guarded amount.

        A pending ``Payment`` row keeps the gateway reference so webhooks
        can settle it.
        """
        if method not in self.enabled_methods() or method not in payment_state.GATEWAY_METHODS:
            raise PaymentError(f"{METHOD_LABELS.get(method, method)} payments are not available", code="METHOD_UNAVAILABLE")

        booking = await booking_workflow.get_customer_booking(db, user, booking_id)
        guard = evaluate_payment_guard(booking, booking.price)
        assert_payable(guard)

        gateway = payment_state.gateway_for_method(method)
        currency = guard.currency or settings.default_currency
        result = await gateway_service.create_payment(
            gateway,
            amount=guard.amount,
            currency=currency,
            reference_id=str(booking.id),
            description=f"Booking {booking.booking_number}",
            metadata={"booking_number": booking.booking_number},
        )
        if not result.success or not result.transaction_id:
            logger.warning(f"{gateway} checkout failed for booking {booking.booking_number}: {result.error_message}")
            raise PaymentError(result.error_message or "Could not start payment")

        db.add(
            Payment(
                booking_id=booking.id,
                user_id=user.id,
                amount=guard.amount,
                currency=currency,
                payment_method=method,
                transaction_id=generate_transaction_id(method, booking.id),
                gateway=gateway,
                gateway_transaction_id=result.transaction_id,
                gateway_response=result.raw_response,
                status=payment_state.PENDING,
            )
        )
        raw = result.raw_response or {}
        return GatewayCheckoutResponse(
            booking_id=booking.id,
            gateway=gateway,
            reference=result.transaction_id,
            client_secret=raw.get("client_secret"),
            approve_url=raw.get("approve_url"),
            amount=guard.amount,
            currency=currency,
        )

    def _response(self, booking: Booking, payment: Payment) -> ProcessPaymentResponse:
        return ProcessPaymentResponse(
            booking_id=booking.id,
            payment_id=payment.id,
            status=booking.status,
            payment_status=booking.payment_status,
            payment_method=payment.payment_method,
            transaction_id=payment.transaction_id,
            requires_verification=booking.requires_verification,
            amount=payment.amount,
            currency=payment.currency,
            message=METHOD_MESSAGES[payment.payment_method],
        )

    async def _verify_with_gateway(
        self, method: str, reference: str, amount: int, currency: str | None
    ):
        gateway = payment_state.gateway_for_method(method)
        result = await gateway_service.verify_payment(gateway, reference)
        if not result.success:
            logger.warning(f"{gateway} verification failed for {reference}: {result.error_message}")
            raise PaymentError(result.error_message or "Payment could not be verified")
        if result.amount != amount:
            logger.warning(f"{gateway} amount mismatch for {reference}: got {result.amount}, expected {amount}")
            raise PaymentError(
                "Paid amount does not match the booking price", code="AMOUNT_MISMATCH"
            )
        if result.currency and currency and result.currency.upper() != currency.upper():
            raise PaymentError(
                "Paid currency does not match the booking price", code="AMOUNT_MISMATCH"
            )
        return result

    async def process_payment(
        self, db: AsyncSession, user: User, data: ProcessPaymentRequest
    ) -> ProcessPaymentResponse:
        """Submit a payment and apply the method's effect on the booking.

        Raises:
            NotFoundError: Booking is not the customer's
            PriceLockError: Price not set or not locked
            InvalidBookingStatus: Booking not payable in its current status
            PaymentError: Gateway verification failed or amounts differ
        """
        booking = await booking_workflow.get_customer_booking(db, user, data.booking_id)
        method = data.payment_method

        existing = None
        if data.gateway_reference:
            existing = await self._payment_by_reference(db, data.gateway_reference)
            if existing and existing.booking_id != booking.id:
                raise PaymentError("Payment reference belongs to another booking", code="DUPLICATE_PAYMENT")
            if existing and existing.status == payment_state.PAID:
                # Already settled by the webhook
                return self._response(booking, existing)

        guard = evaluate_payment_guard(booking, booking.price)
        assert_payable(guard)

        new_payment_status, new_booking_status, requires_verification = METHOD_EFFECTS[method]
        if booking.payment_status != new_payment_status:
            payment_state.assert_payment_transition(booking.payment_status, new_payment_status)

        gateway = payment_state.gateway_for_method(method)
        gateway_reference = data.gateway_reference
        gateway_response = None
        if method in payment_state.GATEWAY_METHODS:
            result = await self._verify_with_gateway(
                method, data.gateway_reference, guard.amount, guard.currency
            )
            gateway_reference = result.transaction_id or data.gateway_reference
            gateway_response = result.raw_response

        now = datetime.now(UTC)
        exchange_rate = data.exchange_rate or Decimal("1")
        payment = existing or Payment(booking_id=booking.id, user_id=user.id)
        payment.amount = guard.amount
        payment.currency = guard.currency or settings.default_currency
        payment.exchange_rate = exchange_rate
        payment.payment_method = method
        payment.transaction_id = data.transaction_id or generate_transaction_id(method, booking.id)
        payment.receipt_url = data.receipt_url
        payment.gateway = gateway
        payment.gateway_transaction_id = gateway_reference
        payment.gateway_response = gateway_response
        payment.status = new_payment_status
        if new_payment_status == payment_state.PAID:
            payment.completed_at = now
        if existing is None:
            db.add(payment)

        booking.payment_method = method
        booking.transaction_id = payment.transaction_id
        booking.requires_verification = requires_verification
        booking.receipt_url = data.receipt_url
        booking.payment_currency = (data.payment_currency or payment.currency).upper()
        booking.exchange_rate_used = exchange_rate
        booking.payment_status = new_payment_status
        if new_payment_status == payment_state.PAID:
            booking.final_paid_amount = guard.amount

        old_status = await booking_workflow.change_status(
            db, booking, new_booking_status, user, f"Payment submitted via {method}"
        )
        await db.flush()

        await audit_service.log_payment_action(
            db,
            user,
            "payment_submitted",
            payment.id,
            old_status=None,
            new_status=new_payment_status,
            amount=guard.amount,
            method=method,
        )
        await notification_service.notify_admins(
            db,
            notification_service.PAYMENT_SUBMITTED,
            title="Payment submitted",
            body=f"{METHOD_LABELS[method]} payment of {_money(guard.amount, payment.currency)} for booking #{booking.booking_number}",
            booking_id=booking.id,
        )
        if new_payment_status == payment_state.PAID:
            await notification_service.notify_customer(
                db,
                booking,
                notification_service.PAYMENT_CONFIRMED,
                title="Payment received",
                body=f"We received {_money(guard.amount, payment.currency)}",
            )

        logger.info(
            f"Booking {booking.booking_number}: {method} payment {payment.transaction_id}, "
            f"{old_status} -> {booking.status}, payment {booking.payment_status}"
        )
        return self._response(booking, payment)

    async def list_booking_payments(
        self, db: AsyncSession, user: User, booking_id: UUID
    ) -> list[Payment]:
        if user.role == "admin":
            booking = await booking_workflow.get_booking(db, booking_id)
        else:
            booking = await booking_workflow.get_customer_booking(db, user, booking_id)
        result = await db.execute(
            select(Payment).where(Payment.booking_id == booking.id).order_by(Payment.created_at.desc())
        )
        return list(result.scalars().all())

    # ==================== ADMIN ====================

    async def confirm_payment(self, db: AsyncSession, admin: User, booking_id: UUID) -> Booking:
        """Admin confirms a cash or bank transfer payment was received.

        Card and PayPal payments settle through their gateway and cannot be
        confirmed by hand.
        """
        booking = await booking_workflow.get_booking(db, booking_id)
        if booking_state.is_final_status(booking.status):
            raise InvalidBookingStatus(
                f"Payment cannot be confirmed for a {booking.status} booking",
                code="INVALID_PAYMENT_STATUS",
            )
        if booking.payment_status not in (payment_state.PENDING, payment_state.PENDING_VERIFICATION):
            raise InvalidBookingStatus(
                f"Payment cannot be confirmed while '{booking.payment_status}'",
                code="INVALID_PAYMENT_STATUS",
            )
        if booking.payment_method not in payment_state.OFFLINE_METHODS:
            raise InvalidBookingStatus(
                "No cash or bank transfer payment has been submitted for this booking",
                code="INVALID_PAYMENT_STATUS",
            )
        payment = await self._latest_payment(
            db,
            booking.id,
            (payment_state.PENDING, payment_state.PENDING_VERIFICATION),
            methods=payment_state.OFFLINE_METHODS,
        )
        if payment is None:
            raise NotFoundError("Pending payment for booking", str(booking_id))

        old_payment_status = payment.status
        payment_state.assert_payment_transition(payment.status, payment_state.PAID)
        now = datetime.now(UTC)
        payment.status = payment_state.PAID
        payment.verified_by = admin.id
        payment.verified_at = now
        payment.completed_at = now

        booking.payment_status = payment_state.PAID
        booking.requires_verification = False
        booking.final_paid_amount = payment.amount
        status = booking_state.normalize_status(booking.status)
        if status in (booking_state.AWAITING_PAYMENT, booking_state.CONFIRMED):
            await booking_workflow.change_status(
                db, booking, booking_state.PAID, admin, "Payment confirmed by admin"
            )

        await audit_service.log_payment_action(
            db, admin, "payment_confirmed", payment.id, old_payment_status, payment.status,
            amount=payment.amount, method=payment.payment_method,
        )
        await notification_service.notify_customer(
            db,
            booking,
            notification_service.PAYMENT_CONFIRMED,
            title="Payment confirmed",
            body=f"Your payment of {_money(payment.amount, payment.currency)} has been confirmed",
        )
        return booking

    async def reject_payment(
        self, db: AsyncSession, admin: User, booking_id: UUID, reason: str
    ) -> Booking:
        """Reject a bank transfer that could not be verified; the customer may retry."""
        booking = await booking_workflow.get_booking(db, booking_id)
        payment = await self._latest_payment(db, booking.id, (payment_state.PENDING_VERIFICATION,))
        if payment is None or booking.payment_status != payment_state.PENDING_VERIFICATION:
            raise InvalidBookingStatus(
                "Only payments awaiting verification can be rejected",
                code="INVALID_PAYMENT_STATUS",
            )

        payment_state.assert_payment_transition(payment.status, payment_state.FAILED)
        payment.status = payment_state.FAILED
        payment.failure_reason = reason
        payment.verified_by = admin.id
        payment.verified_at = datetime.now(UTC)
        booking.payment_status = payment_state.FAILED
        booking.requires_verification = False

        await audit_service.log_payment_action(
            db, admin, "payment_rejected", payment.id, payment_state.PENDING_VERIFICATION,
            payment.status, amount=payment.amount, method=payment.payment_method,
        )
        await notification_service.notify_customer(
            db,
            booking,
            notification_service.PAYMENT_REJECTED,
            title="Payment not verified",
            body=f"We could not verify your payment: {reason}. Please try again.",
        )
        return booking

    async def refund_payment(
        self, db: AsyncSession, admin: User, booking_id: UUID, reason: str
    ) -> Booking:
        """Refund a paid booking that was cancelled afterwards."""
        booking = await booking_workflow.get_booking(db, booking_id)
        if booking_state.normalize_status(booking.status) != booking_state.CANCELLED:
            raise InvalidBookingStatus("Only cancelled bookings can be refunded")
        if booking.payment_status != payment_state.PAID:
            raise InvalidBookingStatus(
                "Booking has no completed payment to refund", code="INVALID_PAYMENT_STATUS"
            )
        payment = await self._latest_payment(db, booking.id, (payment_state.PAID,))
        if payment is None:
            raise NotFoundError("Completed payment for booking", str(booking_id))

        payment_state.assert_payment_transition(payment.status, payment_state.REFUNDED)
        refund = await gateway_service.process_refund(
            payment.gateway,
            transaction_id=payment.gateway_transaction_id or payment.transaction_id,
            amount=payment.amount,
            reason=reason,
        )
        if not refund.success:
            logger.error(f"Refund failed for payment {payment.id}: {refund.error_message}")
            raise PaymentError(refund.error_message or "Refund failed", code="REFUND_FAILED")

        payment.status = payment_state.REFUNDED
        payment.refunded_at = datetime.now(UTC)
        payment.gateway_refund_id = refund.refund_id
        booking.payment_status = payment_state.REFUNDED

        await audit_service.log_payment_action(
            db, admin, "payment_refunded", payment.id, payment_state.PAID, payment.status,
            amount=payment.amount, method=payment.payment_method,
        )
        await notification_service.notify_customer(
            db,
            booking,
            notification_service.PAYMENT_REFUNDED,
            title="Payment refunded",
            body=f"{_money(payment.amount, payment.currency)} has been refunded: {reason}",
        )
        return booking

    # ==================== WEBHOOKS ====================

    async def settle_from_webhook(
        self, db: AsyncSession, reference: str, amount: int | None
    ) -> Payment | None:
        """Mark a gateway payment paid. Repeated events are no-ops."""
        payment = await self._payment_by_reference(db, reference)
        if payment is None:
            logger.warning(f"Webhook for unknown payment reference {reference}")
            return None
        if payment.status == payment_state.PAID:
            return payment
        if amount is not None and amount != payment.amount:
            logger.error(
                f"Webhook amount mismatch for {reference}: got {amount}, expected {payment.amount}"
            )
            return None

        booking = await booking_workflow.get_booking(db, payment.booking_id)
        if not payment_state.is_valid_payment_transition(booking.payment_status, payment_state.PAID):
            logger.warning(
                f"Webhook cannot settle booking {booking.booking_number} in payment status {booking.payment_status}"
            )
            return None

        now = datetime.now(UTC)
        old_status = payment.status
        payment.status = payment_state.PAID
        payment.completed_at = now
        booking.payment_status = payment_state.PAID
        booking.payment_method = payment.payment_method
        booking.transaction_id = payment.transaction_id
        booking.final_paid_amount = payment.amount
        booking.payment_currency = payment.currency
        if booking_state.normalize_status(booking.status) in (
            booking_state.AWAITING_PAYMENT,
            booking_state.CONFIRMED,
        ):
            await booking_workflow.change_status(
                db, booking, booking_state.PAID, None, f"Settled by {payment.gateway} webhook"
            )

        await audit_service.log_payment_action(
            db, None, "payment_settled_by_webhook", payment.id, old_status, payment.status,
            amount=payment.amount, method=payment.payment_method,
        )
        await notification_service.notify_customer(
            db,
            booking,
            notification_service.PAYMENT_CONFIRMED,
            title="Payment received",
            body=f"We received {_money(payment.amount, payment.currency)}",
        )
        logger.info(f"Payment {payment.id} settled by webhook ({reference})")
        return payment

    async def fail_from_webhook(
        self, db: AsyncSession, reference: str, reason: str | None
    ) -> Payment | None:
        payment = await self._payment_by_reference(db, reference)
        if payment is None or payment.status != payment_state.PENDING:
            return payment

        payment.status = payment_state.FAILED
        payment.failure_reason = reason or "Declined by gateway"
        booking = await booking_workflow.get_booking(db, payment.booking_id)
        if booking.payment_status == payment_state.PENDING:
            booking.payment_status = payment_state.FAILED

        await audit_service.log_payment_action(
            db, None, "payment_failed_by_webhook", payment.id, payment_state.PENDING,
            payment.status, amount=payment.amount, method=payment.payment_method,
        )
        return payment


payment_service = PaymentService()
