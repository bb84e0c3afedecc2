"""Review endpoints for customers."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_customer, get_db
from app.models.review import Review, ReviewPrompt
from app.models.user import User
from app.schemas.review import ReviewCreate, ReviewPromptResponse, ReviewResponse
from app.services.review_service import review_service

router = APIRouter()


@router.post("/", response_model=ReviewResponse, status_code=201)
async def create_review(
    review_data: ReviewCreate,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Review:
    """Review one of your completed bookings."""
    return await review_service.submit_review(db, current_user, review_data)


@router.get("/mine", response_model=list[ReviewResponse])
async def get_my_reviews(
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[Review]:
    return await review_service.list_user_reviews(db, current_user)


@router.get("/prompts", response_model=list[ReviewPromptResponse])
async def get_review_prompts(
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[ReviewPrompt]:
    """Completed trips that are waiting for a review."""
    return await review_service.pending_prompts(db, current_user)


@router.post("/prompts/{prompt_id}/dismiss", response_model=ReviewPromptResponse)
async def dismiss_review_prompt(
    prompt_id: UUID,
    current_user: Annotated[User, Depends(get_current_customer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReviewPrompt:
    return await review_service.dismiss_prompt(db, current_user, prompt_id)
