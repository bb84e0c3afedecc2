"""Payment-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.booking import PaymentGuardResponse


class PaymentMethodInfo(BaseModel):
    method: str
    label: str
    requires_verification: bool
    instructions: str | None = None


class PreparePaymentResponse(BaseModel):
    """Everything the checkout page needs, derived from the locked price."""

    booking_id: UUID
    booking_number: str
    guard: PaymentGuardResponse
    payment_methods: list[PaymentMethodInfo]


class ProcessPaymentRequest(BaseModel):
    """Submit a payment for a booking.

    The amount is never accepted from the client; it comes from the booking price.
    """

    booking_id: UUID
    payment_method: str = Field(..., pattern="^(cash|credit_card|bank_transfer|paypal)$")
    transaction_id: str | None = Field(None, max_length=100)
    gateway_reference: str | None = Field(
        None, max_length=100, description="Stripe PaymentIntent id or PayPal order id"
    )
    receipt_url: str | None = None
    payment_currency: str | None = Field(None, min_length=3, max_length=3)
    exchange_rate: Decimal | None = Field(None, gt=0)

    @model_validator(mode="after")
    def check_method_fields(self) -> "ProcessPaymentRequest":
        if self.payment_method in ("credit_card", "paypal") and not self.gateway_reference:
            raise ValueError(f"gateway_reference is required for {self.payment_method} payments")
        return self


class ProcessPaymentResponse(BaseModel):
    booking_id: UUID
    payment_id: UUID
    status: str
    payment_status: str
    payment_method: str
    transaction_id: str
    requires_verification: bool
    amount: int
    currency: str
    message: str


class GatewayCheckoutRequest(BaseModel):
    booking_id: UUID


class GatewayCheckoutResponse(BaseModel):
    """Client-side handle for an online payment (Stripe intent or PayPal order)."""

    booking_id: UUID
    gateway: str
    reference: str
    client_secret: str | None = None
    approve_url: str | None = None
    amount: int
    currency: str


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    amount: int
    currency: str
    payment_method: str
    transaction_id: str
    gateway: str
    status: str
    receipt_url: str | None
    failure_reason: str | None
    verified_at: datetime | None
    completed_at: datetime | None
    created_at: datetime


class PaymentRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
