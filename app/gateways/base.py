"""Base payment gateway interface.

All gateway adapters must implement this interface.
Business logic should NOT live in adapters - only gateway communication.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class GatewayType(str, Enum):
    """Supported payment gateways."""

    STRIPE = "stripe"
    PAYPAL = "paypal"
    MANUAL = "manual"


@dataclass
class PaymentResult:
    """Result of a payment operation."""

    success: bool
    transaction_id: str | None = None
    amount: int | None = None  # settled amount, minor units
    currency: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


@dataclass
class RefundResult:
    """Result of a refund operation."""

    success: bool
    refund_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


def to_major_units(amount: int) -> str:
    """Format minor units as a decimal string (12345 -> '123.45')."""
    return f"{amount / 100:.2f}"


def to_minor_units(value: str | float) -> int:
    """Parse a decimal amount into minor units ('123.45' -> 12345)."""
    return int((Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""

    @abstractmethod
    async def create_payment(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create a payment intent/order.

        Args:
            amount: Amount in smallest currency unit
            currency: ISO currency code
            reference_id: Internal reference (booking id)
            description: Payment description
            metadata: Additional metadata

        Returns:
            PaymentResult with the gateway reference
        """

    @abstractmethod
    async def verify_payment(
        self,
        transaction_id: str,
    ) -> PaymentResult:
        """Confirm a payment has settled, capturing it where the gateway requires.

        Args:
            transaction_id: Gateway reference returned by create_payment

        Returns:
            PaymentResult with settled amount when successful
        """

    @abstractmethod
    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Process a refund.

        Args:
            transaction_id: Original payment transaction ID
            amount: Refund amount in smallest currency unit
            reason: Refund reason

        Returns:
            RefundResult with refund details
        """

    @abstractmethod
    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify webhook signature and parse payload.

        Args:
            payload: Raw request body
            signature: Webhook signature header

        Returns:
            Parsed event dict if valid, None if invalid
        """
