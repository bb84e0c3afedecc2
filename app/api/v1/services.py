"""Service catalog endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.core.exceptions import NotFoundError
from app.models.service import Service
from app.schemas.service import ServiceResponse

router = APIRouter()


@router.get("/", response_model=list[ServiceResponse])
async def list_services(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[Service]:
    """Active services with their booking form fields."""
    result = await db.execute(
        select(Service)
        .where(Service.is_active == True)  # noqa: E712
        .order_by(Service.sort_order, Service.name)
    )
    return list(result.scalars().all())


@router.get("/{service_type}", response_model=ServiceResponse)
async def get_service(
    service_type: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Service:
    result = await db.execute(
        select(Service).where(
            Service.service_type == service_type,
            Service.is_active == True,  # noqa: E712
        )
    )
    service = result.scalar_one_or_none()
    if not service:
        raise NotFoundError("Service", service_type)
    return service
