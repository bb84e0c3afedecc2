"""Stripe payment gateway adapter (credit cards)."""

import logging

import stripe

from app.config import settings
from app.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntent-based card payments."""

    def __init__(self):
        self.secret_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STRIPE

    @property
    def is_test_mode(self) -> bool:
        return bool(self.secret_key and self.secret_key.startswith("sk_test_"))

    async def create_payment(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create Stripe PaymentIntent."""
        if not self.secret_key:
            return PaymentResult(success=False, error_message="Stripe not configured")

        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount,
                currency=currency.lower(),
                description=description,
                metadata={"booking_id": reference_id, **(metadata or {})},
            )
        except stripe.StripeError as e:
            logger.warning(f"Stripe intent creation failed for booking {reference_id}: {e}")
            return PaymentResult(success=False, error_message=str(e))

        return PaymentResult(
            success=True,
            transaction_id=intent.id,
            amount=amount,
            currency=currency.upper(),
            raw_response={"client_secret": intent.client_secret, "id": intent.id},
        )

    async def verify_payment(
        self,
        transaction_id: str,
    ) -> PaymentResult:
        """Check that the PaymentIntent succeeded and report the amount received."""
        if not self.secret_key:
            return PaymentResult(success=False, error_message="Stripe not configured")

        try:
            intent = stripe.PaymentIntent.retrieve(transaction_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            logger.warning(f"Stripe intent lookup failed for {transaction_id}: {e}")
            return PaymentResult(success=False, transaction_id=transaction_id, error_message=str(e))

        succeeded = intent.status == "succeeded"
        return PaymentResult(
            success=succeeded,
            transaction_id=transaction_id,
            amount=intent.amount_received if succeeded else None,
            currency=(intent.currency or "").upper() or None,
            error_message=None if succeeded else f"Payment intent status is {intent.status}",
            raw_response={"status": intent.status, "id": intent.id},
        )

    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Process Stripe refund."""
        if not self.secret_key:
            return RefundResult(success=False, error_message="Stripe not configured")

        try:
            refund = stripe.Refund.create(
                api_key=self.secret_key,
                payment_intent=transaction_id,
                amount=amount,
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
            )
        except stripe.StripeError as e:
            logger.warning(f"Stripe refund failed for {transaction_id}: {e}")
            return RefundResult(success=False, error_message=str(e))

        return RefundResult(
            success=refund.status in ("succeeded", "pending"),
            refund_id=refund.id,
            raw_response={"status": refund.status, "id": refund.id},
        )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify Stripe webhook signature."""
        if not self.webhook_secret:
            return None

        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Rejected Stripe webhook: {e}")
            return None
