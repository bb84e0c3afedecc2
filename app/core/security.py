"""Security utilities for authentication and authorization."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.core.exceptions import AuthenticationError

# Password hashing context using Argon2
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

ROLES = ("customer", "driver", "guide", "admin")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using Argon2."""
    return pwd_context.hash(password)


def _encode(data: dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(UTC)
    to_encode = data.copy()
    to_encode.update({"iat": now, "exp": now + lifetime, "type": token_type})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    return _encode(
        data,
        "access",
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT refresh token."""
    return _encode(
        data,
        "refresh",
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def verify_token(token: str, token_type: str = "access") -> dict[str, Any]:
    """Verify and decode a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise AuthenticationError(f"Token validation failed: {e}") from e

    if payload.get("type") != token_type:
        raise AuthenticationError("Invalid token type")
    if payload.get("role") not in ROLES:
        raise AuthenticationError("Invalid token role")
    return payload


def create_tokens(user_id: UUID | str, email: str, role: str) -> dict[str, str]:
    """Create both access and refresh tokens for a user."""
    token_data = {"sub": str(user_id), "email": email, "role": role}
    return {
        "access_token": create_access_token(token_data),
        "refresh_token": create_refresh_token(token_data),
        "token_type": "bearer",
    }
