"""Manual payment gateway adapter for bank transfers and cash."""

from app.config import settings
from app.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)


class ManualGateway(PaymentGateway):
    """Offline payments.

    Nothing is settled here; an admin confirms the money arrived.
    """

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def create_payment(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Return bank transfer instructions (always succeeds)."""
        return PaymentResult(
            success=True,
            transaction_id=f"manual_{reference_id}",
            amount=amount,
            currency=currency,
            raw_response={
                "type": "bank_transfer",
                "status": "pending_verification",
                "instructions": (
                    f"Transfer {amount / 100:.2f} {currency} to {settings.bank_transfer_details} "
                    f"quoting {reference_id}, then upload the receipt."
                ),
            },
        )

    async def verify_payment(
        self,
        transaction_id: str,
    ) -> PaymentResult:
        """Manual payments are verified by an admin, never automatically."""
        return PaymentResult(
            success=False,
            transaction_id=transaction_id,
            error_message="Manual verification required by admin",
        )

    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Record a refund the admin pays out by hand."""
        return RefundResult(
            success=True,
            refund_id=f"refund_{transaction_id}",
            raw_response={
                "type": "manual_refund",
                "status": "pending",
                "note": "Admin must return the funds manually",
                "amount": amount,
                "reason": reason,
            },
        )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Manual gateway doesn't have webhooks."""
        return None
