"""Admin panel endpoints: bookings, pricing, payments, staff and review moderation."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_db
from app.core.idempotency import ensure_not_processed, mark_processed
from app.models.admin import AuditLog
from app.models.booking import Booking
from app.models.review import Review
from app.models.user import Driver, Guide, User
from app.schemas.booking import (
    AdminBookingUpdate,
    AssignDriverRequest,
    AssignGuideRequest,
    BookingDetailResponse,
    BookingListResponse,
    BookingResponse,
    RejectBookingRequest,
    SetPriceRequest,
)
from app.schemas.admin import AuditLogListResponse, AuditLogResponse, StaffResponse
from app.schemas.payment import PaymentRejectRequest, RefundRequest
from app.schemas.review import (
    AdminReviewResponse,
    FollowupRequest,
    ReviewListResponse,
    ReviewModerationRequest,
    StaffRatingStats,
)
from app.services.booking_workflow import booking_workflow
from app.services.payment_service import payment_service
from app.services.review_service import review_service

router = APIRouter()


# ============ BOOKINGS ============


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: str | None = Query(default=None, alias="status"),
    payment_status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> BookingListResponse:
    """All bookings, newest first."""
    bookings, total = await booking_workflow.list_bookings(
        db, status_filter, payment_status, page, page_size
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/bookings/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingDetailResponse:
    booking = await booking_workflow.get_booking(db, booking_id)
    return await booking_workflow.build_detail(db, booking, include_hidden_driver=True)


@router.patch("/bookings/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    updates: AdminBookingUpdate,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Edit a booking. Status changes follow the transition table."""
    return await booking_workflow.update_booking(db, admin, booking_id, updates)


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    await booking_workflow.delete_booking(db, admin, booking_id)


@router.post("/bookings/{booking_id}/set-price", response_model=BookingResponse)
async def set_price(
    booking_id: UUID,
    request: SetPriceRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Set the price and send it to the customer for confirmation."""
    return await booking_workflow.set_price(db, admin, booking_id, request)


@router.post("/bookings/{booking_id}/lock-price", response_model=BookingResponse)
async def lock_price(
    booking_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    return await booking_workflow.lock_price(db, admin, booking_id)


@router.post("/bookings/{booking_id}/unlock-price", response_model=BookingResponse)
async def unlock_price(
    booking_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    return await booking_workflow.unlock_price(db, admin, booking_id)


@router.post("/bookings/{booking_id}/accept-proposal", response_model=BookingResponse)
async def accept_proposed_price(
    booking_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Accept the customer's counter-offer."""
    return await booking_workflow.accept_proposed_price(db, admin, booking_id)


@router.post("/bookings/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: UUID,
    request: RejectBookingRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    return await booking_workflow.reject_booking(db, admin, booking_id, request.reason)


@router.post("/bookings/{booking_id}/assign-driver", response_model=BookingResponse)
async def assign_driver(
    booking_id: UUID,
    request: AssignDriverRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Assign a driver; send ``driver_id: null`` to unassign."""
    return await booking_workflow.assign_driver(
        db, admin, booking_id, request.driver_id, request.show_to_customer
    )


@router.post("/bookings/{booking_id}/assign-guide", response_model=BookingResponse)
async def assign_guide(
    booking_id: UUID,
    request: AssignGuideRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Assign a guide; send ``guide_id: null`` to unassign."""
    return await booking_workflow.assign_guide(db, admin, booking_id, request.guide_id)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    return await booking_workflow.complete_booking(db, admin, booking_id)


# ============ PAYMENTS ============


@router.post("/bookings/{booking_id}/payment/confirm", response_model=BookingResponse)
async def confirm_payment(
    booking_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Confirm a cash or bank transfer payment was received."""
    idem_key = ensure_not_processed("payment_confirm", booking_id)
    booking = await payment_service.confirm_payment(db, admin, booking_id)
    await db.commit()
    mark_processed(idem_key, {"booking_id": str(booking_id)})
    return booking


@router.post("/bookings/{booking_id}/payment/reject", response_model=BookingResponse)
async def reject_payment(
    booking_id: UUID,
    request: PaymentRejectRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Reject an unverifiable bank transfer; the customer can pay again."""
    return await payment_service.reject_payment(db, admin, booking_id, request.reason)


@router.post("/bookings/{booking_id}/payment/refund", response_model=BookingResponse)
async def refund_payment(
    booking_id: UUID,
    request: RefundRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Refund the payment of a cancelled booking."""
    idem_key = ensure_not_processed("payment_refund", booking_id)
    booking = await payment_service.refund_payment(db, admin, booking_id, request.reason)
    await db.commit()
    mark_processed(idem_key, {"booking_id": str(booking_id)})
    return booking


# ============ STAFF ============


@router.get("/drivers", response_model=list[StaffResponse])
async def list_drivers(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    active_only: bool = Query(default=True),
) -> list[Driver]:
    """Drivers available for assignment."""
    query = select(Driver).order_by(Driver.full_name)
    if active_only:
        query = query.where(Driver.status == "active")
    result = await db.execute(query)
    return list(result.scalars().all())


@router.get("/guides", response_model=list[StaffResponse])
async def list_guides(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    active_only: bool = Query(default=True),
) -> list[Guide]:
    """Guides available for assignment."""
    query = select(Guide).order_by(Guide.full_name)
    if active_only:
        query = query.where(Guide.status == "active")
    result = await db.execute(query)
    return list(result.scalars().all())


@router.get("/drivers/ratings", response_model=list[StaffRatingStats])
async def driver_ratings(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    driver_id: UUID | None = Query(default=None),
) -> list[StaffRatingStats]:
    return await review_service.rating_stats(db, "driver", driver_id)


@router.get("/guides/ratings", response_model=list[StaffRatingStats])
async def guide_ratings(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    guide_id: UUID | None = Query(default=None),
) -> list[StaffRatingStats]:
    return await review_service.rating_stats(db, "guide", guide_id)


# ============ REVIEWS ============


@router.get("/reviews", response_model=ReviewListResponse)
async def list_reviews(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: str | None = Query(default=None, alias="status"),
    flagged: bool | None = Query(default=None),
    service_type: str | None = Query(default=None),
    needs_followup: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ReviewListResponse:
    reviews, total, pending_followups = await review_service.list_reviews(
        db,
        status=status_filter,
        flagged=flagged,
        service_type=service_type,
        needs_followup=needs_followup,
        page=page,
        page_size=page_size,
    )
    return ReviewListResponse(
        reviews=[AdminReviewResponse.model_validate(r) for r in reviews],
        total=total,
        pending_followups=pending_followups,
        page=page,
        page_size=page_size,
    )


@router.post("/reviews/{review_id}/moderate", response_model=AdminReviewResponse)
async def moderate_review(
    review_id: UUID,
    request: ReviewModerationRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Review:
    return await review_service.moderate_review(db, admin, review_id, request.action, request.notes)


@router.post("/reviews/{review_id}/followup", response_model=AdminReviewResponse)
async def complete_review_followup(
    review_id: UUID,
    request: FollowupRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Review:
    """Record how an unhappy customer was followed up."""
    return await review_service.complete_followup(db, admin, review_id, request.notes)


# ============ AUDIT LOG ============


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def get_audit_logs(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource_type: str | None = Query(default=None),
    resource_id: UUID | None = Query(default=None),
    action: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
) -> AuditLogListResponse:
    """Browse the audit trail."""
    query = select(AuditLog)
    if resource_type:
        query = query.where(AuditLog.resource_type == resource_type)
    if resource_id:
        query = query.where(AuditLog.resource_id == resource_id)
    if action:
        query = query.where(AuditLog.action == action)

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar() or 0

    result = await db.execute(
        query.order_by(AuditLog.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )
