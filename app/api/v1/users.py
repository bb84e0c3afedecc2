"""User profile endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db
from app.core.exceptions import ValidationError
from app.models.user import User
from app.schemas.user import UserResponse, UserUpdate

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_my_profile(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user's profile."""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    updates: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Update current user's profile."""
    update_data = updates.model_dump(exclude_unset=True)

    if update_data.get("phone"):
        result = await db.execute(
            select(User).where(User.phone == update_data["phone"], User.id != current_user.id)
        )
        if result.scalar_one_or_none():
            raise ValidationError("Phone number already registered", code="PHONE_TAKEN")

    for field, value in update_data.items():
        if field == "preferred_language" and value is None:
            continue
        setattr(current_user, field, value)

    return current_user
