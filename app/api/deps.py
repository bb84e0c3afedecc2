"""API dependencies for authentication and role checks."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import verify_token
from app.database import get_db
from app.domain.assignment_state import STAFF_ACTIVE
from app.models.user import Driver, Guide, User

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_customer",
    "get_current_admin",
    "get_current_driver",
    "get_current_guide",
    "get_current_staff",
    "StaffContext",
]

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    try:
        user_uuid = UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid token payload")

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user


async def get_current_customer(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Booking endpoints are for customers (admins may use them to test)."""
    if current_user.role not in ("customer", "admin"):
        raise AuthorizationError("Customer access required")
    return current_user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are an admin."""
    if current_user.role != "admin":
        raise AuthorizationError("Admin access required")
    return current_user


async def get_current_driver(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Driver:
    """Active driver profile of the current user."""
    if current_user.role != "driver":
        raise AuthorizationError("Driver access required")
    result = await db.execute(select(Driver).where(Driver.user_id == current_user.id))
    driver = result.scalar_one_or_none()
    if not driver or driver.status != STAFF_ACTIVE:
        raise AuthorizationError("Driver profile is not active")
    return driver


async def get_current_guide(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Guide:
    """Active guide profile of the current user."""
    if current_user.role != "guide":
        raise AuthorizationError("Guide access required")
    result = await db.execute(select(Guide).where(Guide.user_id == current_user.id))
    guide = result.scalar_one_or_none()
    if not guide or guide.status != STAFF_ACTIVE:
        raise AuthorizationError("Guide profile is not active")
    return guide


class StaffContext:
    """The current driver or guide together with their user account."""

    def __init__(self, user: User, profile: Driver | Guide, role: str):
        self.user = user
        self.profile = profile
        self.role = role


async def get_current_staff(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> StaffContext:
    """Resolve the driver or guide profile for assignment endpoints."""
    if current_user.role == "driver":
        profile = await get_current_driver(current_user, db)
    elif current_user.role == "guide":
        profile = await get_current_guide(current_user, db)
    else:
        raise AuthorizationError("Driver or guide access required")
    return StaffContext(current_user, profile, current_user.role)
