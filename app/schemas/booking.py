"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator

from app.domain.booking_state import get_status_label
from app.schemas.user import normalize_phone


class UserInfo(BaseModel):
    """Contact details of the person the booking is for."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    full_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("full_name", "fullName"),
    )
    phone: str = Field(..., min_length=1)
    email: str | None = None
    language: str = "en"

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Full name is required")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return normalize_phone(v.strip())


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    service_type: str = Field(..., min_length=1, max_length=50)
    service_details: dict[str, Any] = Field(default_factory=dict)
    user_info: UserInfo
    currency: str | None = Field(None, min_length=3, max_length=3)
    customer_notes: str | None = Field(None, max_length=2000)
    as_draft: bool = False


class BookingCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class ProposePriceRequest(BaseModel):
    """Customer counter-offer while the price awaits confirmation."""

    amount: int = Field(..., gt=0)
    note: str | None = Field(None, max_length=1000)


class BookingPriceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    admin_price: int | None
    tax: int
    currency: str
    locked: bool
    locked_at: datetime | None
    customer_proposed_price: int | None
    total: int


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    user_id: UUID
    service_type: str
    service_details: dict[str, Any]
    user_info: dict[str, Any]
    customer_notes: str | None
    admin_notes: str | None

    status: str
    payment_status: str
    payment_method: str | None
    transaction_id: str | None
    requires_verification: bool
    final_paid_amount: int | None
    payment_currency: str | None

    assigned_driver_id: UUID | None
    driver_response: str | None
    assigned_guide_id: UUID | None
    guide_response: str | None

    cancellation_reason: str | None
    price: BookingPriceResponse | None = None

    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def status_label(self) -> str:
        return get_status_label(self.status)


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int


class StaffContact(BaseModel):
    id: UUID
    full_name: str
    phone: str | None
    vehicle_type: str | None = None
    vehicle_number: str | None = None
    languages: list[str] | None = None


class StatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    old_status: str | None
    new_status: str
    changed_by_role: str | None
    notes: str | None
    created_at: datetime


class PaymentGuardResponse(BaseModel):
    """Whether the booking can be paid now and for how much."""

    model_config = ConfigDict(from_attributes=True)

    can_pay: bool
    subtotal: int
    tax: int
    amount: int
    currency: str | None
    locked: bool
    reason: str | None
    code: str | None


class BookingDetailResponse(BookingResponse):
    driver: StaffContact | None = None
    guide: StaffContact | None = None
    history: list[StatusHistoryResponse] = []
    payment_guard: PaymentGuardResponse


# ==================== ADMIN ====================


class AdminBookingUpdate(BaseModel):
    """Generic admin edit. Status changes still follow the transition table."""

    status: str | None = None
    payment_status: str | None = None
    admin_notes: str | None = Field(None, max_length=2000)
    customer_notes: str | None = Field(None, max_length=2000)
    service_details: dict[str, Any] | None = None
    show_driver_to_customer: bool | None = None
    admin_price: int | None = Field(None, gt=0)
    tax: int | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)


class SetPriceRequest(BaseModel):
    price: int = Field(..., gt=0)
    tax: int = Field(default=0, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    admin_notes: str | None = Field(None, max_length=2000)
    lock: bool = True


class RejectBookingRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class AssignDriverRequest(BaseModel):
    driver_id: UUID | None = None
    show_to_customer: bool = False


class AssignGuideRequest(BaseModel):
    guide_id: UUID | None = None


class AssignmentResponseRequest(BaseModel):
    """Driver or guide answer to an assignment."""

    accept: bool
    reason: str | None = Field(None, max_length=1000)
