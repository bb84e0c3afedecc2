"""User-related Pydantic schemas."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

PHONE_PATTERN = r"^\+?[0-9]{7,15}$"


def normalize_phone(v: str | None) -> str | None:
    if v is None:
        return v
    cleaned = re.sub(r"[\s\-\(\)]", "", v)
    if not re.match(PHONE_PATTERN, cleaned):
        raise ValueError("Phone must be 7-15 digits, optionally starting with +")
    return cleaned


class UserBase(BaseModel):
    """Base user schema."""

    email: EmailStr
    phone: str | None = None
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    preferred_language: str = Field(default="en", pattern="^(en|ar|ru)$")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return normalize_phone(v)


class UserCreate(UserBase):
    """Schema for customer self-registration."""

    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not re.search(r"[A-Za-z]", v):
            raise ValueError("Password must contain at least one letter")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain at least one digit")
        return v


class UserLogin(BaseModel):
    """Schema for user login."""

    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    """Schema for token refresh."""

    refresh_token: str


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    phone: str | None
    first_name: str | None
    last_name: str | None
    role: str
    preferred_language: str
    is_active: bool
    created_at: datetime


class TokenResponse(BaseModel):
    """Schema for authentication token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserUpdate(BaseModel):
    """Profile fields a user may change themselves."""

    phone: str | None = None
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    preferred_language: str | None = Field(None, pattern="^(en|ar|ru)$")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return normalize_phone(v)
