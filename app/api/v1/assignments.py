"""Driver and guide assignment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import StaffContext, get_current_staff, get_db
from app.models.booking import Booking
from app.schemas.booking import AssignmentResponseRequest, BookingResponse
from app.services.booking_workflow import booking_workflow

router = APIRouter()


@router.get("/", response_model=list[BookingResponse])
async def list_my_assignments(
    staff: Annotated[StaffContext, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: str | None = Query(default=None, alias="status"),
) -> list[Booking]:
    """Bookings assigned to the current driver or guide."""
    return await booking_workflow.list_assignments(db, staff.profile, staff.role, status_filter)


@router.post("/{booking_id}/respond", response_model=BookingResponse)
async def respond_to_assignment(
    booking_id: UUID,
    request: AssignmentResponseRequest,
    staff: Annotated[StaffContext, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Accept or decline an assignment."""
    return await booking_workflow.respond_to_assignment(
        db, staff.user, staff.profile, staff.role, booking_id, request.accept, request.reason
    )


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_assignment(
    booking_id: UUID,
    staff: Annotated[StaffContext, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Mark an accepted, in-progress trip as completed."""
    return await booking_workflow.complete_booking(
        db, staff.user, booking_id, profile=staff.profile, role=staff.role
    )
