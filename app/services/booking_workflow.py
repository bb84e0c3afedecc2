"""Booking price-lock workflow.

Every customer, admin and staff step on a booking goes through this
service. Each step loads the booking, checks it against the rules in
``app.domain``, mutates it, records the status change, writes an audit
entry and queues in-app notifications. Commit is left to the request
session (``get_db``).
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    AuthorizationError,
    InvalidBookingStatus,
    NotFoundError,
    PriceLockError,
    ValidationError,
)
from app.domain import assignment_state, booking_state, payment_state
from app.domain.payment_guard import evaluate_payment_guard
from app.domain.payment_state import assert_payment_transition
from app.gateways.base import to_major_units
from app.models.booking import Booking, BookingPrice, BookingStatusHistory
from app.models.user import Driver, Guide, User
from app.schemas.booking import (
    AdminBookingUpdate,
    BookingDetailResponse,
    BookingResponse,
    PaymentGuardResponse,
    SetPriceRequest,
    StaffContact,
    StatusHistoryResponse,
)
from app.services.audit_service import audit_service
from app.services.notification_service import notification_service
from app.services.review_service import review_service

logger = logging.getLogger(__name__)

# Status -> timestamp column set when a booking enters it
_STATUS_TIMESTAMPS = {
    booking_state.CONFIRMED: "confirmed_at",
    booking_state.PAID: "paid_at",
    booking_state.COMPLETED: "completed_at",
    booking_state.CANCELLED: "cancelled_at",
}


def _format_price(amount: int, currency: str | None) -> str:
    return f"{to_major_units(amount)} {currency or settings.default_currency}"


class BookingWorkflowService:
    """Booking lifecycle operations for customers, admins and staff."""

    # ==================== LOADING ====================

    async def get_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        result = await db.execute(select(Booking).where(Booking.id == booking_id))
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def get_customer_booking(self, db: AsyncSession, user: User, booking_id: UUID) -> Booking:
        """Load a booking owned by the customer; other owners look like 404."""
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id, Booking.user_id == user.id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    # ==================== STATUS ====================

    async def change_status(
        self,
        db: AsyncSession,
        booking: Booking,
        target: str,
        actor: User | None,
        notes: str | None = None,
    ) -> str:
        """Move a booking to ``target`` after validating the transition.

        Legacy statuses are normalized first. Writes a history row and sets
        the matching lifecycle timestamp.

        Returns:
            str: The previous (normalized) status
        """
        current = booking_state.normalize_status(booking.status)
        target = booking_state.normalize_status(target)
        booking_state.assert_booking_transition(current, target)
        if current == target:
            return current

        booking.status = target
        column = _STATUS_TIMESTAMPS.get(target)
        if column:
            setattr(booking, column, datetime.now(UTC))

        db.add(
            BookingStatusHistory(
                booking_id=booking.id,
                old_status=current,
                new_status=target,
                changed_by=actor.id if actor else None,
                changed_by_role=actor.role if actor else "system",
                notes=notes,
            )
        )
        logger.info(f"Booking {booking.booking_number}: {current} -> {target}")
        return current

    def ensure_price(self, booking: Booking) -> BookingPrice:
        """Return the booking's price row, creating an empty one if missing."""
        if booking.price is None:
            booking.price = BookingPrice(
                admin_price=None, tax=0, locked=False, currency=settings.default_currency
            )
        return booking.price

    # ==================== CUSTOMER ====================

    async def list_customer_bookings(
        self, db: AsyncSession, user: User, status: str | None = None, limit: int = 50
    ) -> list[Booking]:
        query = select(Booking).where(Booking.user_id == user.id)
        if status:
            query = query.where(Booking.status == booking_state.normalize_status(status))
        query = query.order_by(Booking.created_at.desc()).limit(min(limit, 100))
        result = await db.execute(query)
        return list(result.scalars().all())

    async def build_detail(
        self, db: AsyncSession, booking: Booking, include_hidden_driver: bool = False
    ) -> BookingDetailResponse:
        """Booking with staff contacts, recent history and the payment guard.

        The driver is shown to customers only when an admin allowed it.
        """
        history_result = await db.execute(
            select(BookingStatusHistory)
            .where(BookingStatusHistory.booking_id == booking.id)
            .order_by(BookingStatusHistory.created_at.desc())
            .limit(10)
        )
        history = list(history_result.scalars().all())

        driver = None
        if booking.assigned_driver and (include_hidden_driver or booking.show_driver_to_customer):
            d = booking.assigned_driver
            driver = StaffContact(
                id=d.id,
                full_name=d.full_name,
                phone=d.phone,
                vehicle_type=d.vehicle_type,
                vehicle_number=d.vehicle_number,
            )
        guide = None
        if booking.assigned_guide:
            g = booking.assigned_guide
            guide = StaffContact(id=g.id, full_name=g.full_name, phone=g.phone, languages=g.languages)

        guard = evaluate_payment_guard(booking, booking.price)
        base = BookingResponse.model_validate(booking).model_dump(exclude={"status_label"})
        return BookingDetailResponse(
            **base,
            driver=driver,
            guide=guide,
            history=[StatusHistoryResponse.model_validate(h) for h in history],
            payment_guard=PaymentGuardResponse.model_validate(guard),
        )

    async def submit_draft(self, db: AsyncSession, user: User, booking_id: UUID) -> Booking:
        booking = await self.get_customer_booking(db, user, booking_id)
        if booking_state.normalize_status(booking.status) != booking_state.DRAFT:
            raise InvalidBookingStatus("Only draft bookings can be submitted")

        await self.change_status(
            db, booking, booking_state.UNDER_REVIEW, user, "Draft submitted by customer"
        )
        await notification_service.notify_admins(
            db,
            notification_service.NEW_BOOKING,
            title="New booking",
            body=f"New {booking.service_type} booking from {booking.user_info.get('full_name', user.full_name)}",
            booking_id=booking.id,
        )
        await audit_service.log_booking_action(
            db, user, "booking_submitted", booking.id, booking_state.DRAFT, booking_state.UNDER_REVIEW
        )
        return booking

    async def confirm_price(self, db: AsyncSession, user: User, booking_id: UUID) -> Booking:
        """Customer accepts the locked admin price; the booking becomes payable."""
        booking = await self.get_customer_booking(db, user, booking_id)
        if booking_state.normalize_status(booking.status) != booking_state.AWAITING_CUSTOMER_CONFIRMATION:
            raise InvalidBookingStatus(
                f"Booking is not awaiting price confirmation (status '{booking.status}')"
            )
        price = booking.price
        if price is None or not price.admin_price or price.admin_price <= 0:
            raise PriceLockError("Price has not been set by admin yet.", code="PRICE_NOT_SET")
        if not price.locked:
            raise PriceLockError(
                "Price is not locked. Please wait for admin to finalize.", code="PRICE_NOT_LOCKED"
            )

        old_status = await self.change_status(
            db, booking, booking_state.AWAITING_PAYMENT, user, "Price confirmed by customer"
        )
        await audit_service.log_booking_action(
            db,
            user,
            "price_confirmed",
            booking.id,
            old_status,
            booking.status,
            amount=price.total,
            currency=price.currency,
        )
        await notification_service.notify_admins(
            db,
            notification_service.PRICE_CONFIRMED,
            title="Price confirmed",
            body=f"Customer confirmed {_format_price(price.total, price.currency)} for booking #{booking.booking_number}",
            booking_id=booking.id,
        )
        return booking

    async def propose_price(
        self, db: AsyncSession, user: User, booking_id: UUID, amount: int, note: str | None = None
    ) -> Booking:
        """Customer counter-offer. Unlocks the price until an admin answers."""
        booking = await self.get_customer_booking(db, user, booking_id)
        if booking_state.normalize_status(booking.status) != booking_state.AWAITING_CUSTOMER_CONFIRMATION:
            raise InvalidBookingStatus("A price can only be proposed while awaiting your confirmation")

        price = self.ensure_price(booking)
        price.customer_proposed_price = amount
        price.proposed_at = datetime.now(UTC)
        price.proposal_note = note
        price.locked = False
        price.locked_at = None
        price.locked_by = None

        await notification_service.notify_admins(
            db,
            notification_service.PRICE_PROPOSED,
            title="Price proposal",
            body=f"Customer proposed {_format_price(amount, price.currency)} for booking #{booking.booking_number}",
            booking_id=booking.id,
        )
        await audit_service.log_booking_action(
            db, user, "price_proposed", booking.id, proposed_price=amount
        )
        return booking

    async def cancel_booking(
        self, db: AsyncSession, user: User, booking_id: UUID, reason: str
    ) -> Booking:
        booking = await self.get_customer_booking(db, user, booking_id)
        if not booking_state.can_customer_cancel(booking.status):
            raise InvalidBookingStatus(
                f"Booking cannot be cancelled in '{booking.status}' status"
            )

        old_status = await self.change_status(
            db, booking, booking_state.CANCELLED, user, f"Cancelled by customer: {reason}"
        )
        booking.cancelled_by = "customer"
        booking.cancellation_reason = reason
        note = f"[Cancelled: {reason}]"
        booking.customer_notes = f"{booking.customer_notes}\n{note}" if booking.customer_notes else note

        await notification_service.notify_admins(
            db,
            notification_service.BOOKING_CANCELLED,
            title="Booking cancelled",
            body=f"Booking #{booking.booking_number} was cancelled by the customer: {reason}",
            booking_id=booking.id,
        )
        await audit_service.log_booking_action(
            db, user, "booking_cancelled", booking.id, old_status, booking.status, reason=reason
        )
        return booking

    # ==================== ADMIN ====================

    async def list_bookings(
        self,
        db: AsyncSession,
        status: str | None = None,
        payment_status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Booking], int]:
        query = select(Booking)
        if status:
            query = query.where(Booking.status == booking_state.normalize_status(status))
        if payment_status:
            query = query.where(Booking.payment_status == payment_status)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        offset = (page - 1) * page_size
        result = await db.execute(
            query.order_by(Booking.created_at.desc()).offset(offset).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def update_booking(
        self, db: AsyncSession, admin: User, booking_id: UUID, data: AdminBookingUpdate
    ) -> Booking:
        """Generic admin edit; status and price rules still apply."""
        booking = await self.get_booking(db, booking_id)
        changes = data.model_dump(exclude_unset=True)
        old_values = {"status": booking.status, "payment_status": booking.payment_status}

        price_fields = {k: changes.pop(k) for k in ("admin_price", "tax", "currency") if k in changes}
        if price_fields:
            if booking_state.is_price_locked_status(booking.status):
                raise PriceLockError("Cannot modify price after payment", code="PRICE_LOCKED")
            price = self.ensure_price(booking)
            if price.locked:
                raise PriceLockError("Price is locked. Unlock it before editing.", code="PRICE_LOCKED")
            for key, value in price_fields.items():
                if value is not None:
                    setattr(price, key, value.upper() if key == "currency" else value)

        new_payment_status = changes.pop("payment_status", None)
        if new_payment_status and new_payment_status != booking.payment_status:
            assert_payment_transition(booking.payment_status, new_payment_status)
            booking.payment_status = new_payment_status

        new_status = changes.pop("status", None)
        if new_status:
            if booking_state.normalize_status(new_status) == booking_state.REJECTED:
                self._assert_no_payment_held(booking)
            await self.change_status(db, booking, new_status, admin, "Updated by admin")
            if booking.status == booking_state.CANCELLED:
                booking.cancelled_by = "admin"
            await notification_service.notify_customer(
                db,
                booking,
                notification_service.BOOKING_STATUS_CHANGED,
                title="Booking updated",
                body=f"Your booking is now {booking_state.get_status_label(booking.status)}",
            )

        for key, value in changes.items():
            setattr(booking, key, value)

        await audit_service.log_action(
            db,
            admin,
            "booking_updated",
            "booking",
            booking.id,
            old_values=old_values,
            new_values={
                "status": booking.status,
                "payment_status": booking.payment_status,
                **{k: v for k, v in price_fields.items() if v is not None},
            },
        )
        return booking

    async def delete_booking(self, db: AsyncSession, admin: User, booking_id: UUID) -> None:
        booking = await self.get_booking(db, booking_id)
        await audit_service.log_action(
            db,
            admin,
            "booking_deleted",
            "booking",
            booking.id,
            old_values={"booking_number": booking.booking_number, "status": booking.status},
        )
        await db.delete(booking)
        logger.info(f"Booking {booking.booking_number} deleted by admin {admin.id}")

    async def set_price(
        self, db: AsyncSession, admin: User, booking_id: UUID, data: SetPriceRequest
    ) -> Booking:
        """Set (and by default lock) the price, then ask the customer to confirm."""
        booking = await self.get_booking(db, booking_id)
        if booking_state.is_price_locked_status(booking.status):
            raise PriceLockError("Cannot change price after payment", code="PRICE_LOCKED")
        if not booking_state.can_edit_price(booking.status):
            raise InvalidBookingStatus(f"Price cannot be set in '{booking.status}' status")

        price = self.ensure_price(booking)
        if price.locked:
            raise PriceLockError("Price is locked. Unlock it before changing.", code="PRICE_LOCKED")

        old_price = price.admin_price
        price.admin_price = data.price
        price.tax = data.tax
        price.currency = (data.currency or price.currency or settings.default_currency).upper()
        price.customer_proposed_price = None
        price.proposed_at = None
        price.proposal_note = None
        if data.lock:
            price.locked = True
            price.locked_at = datetime.now(UTC)
            price.locked_by = admin.id
        if data.admin_notes is not None:
            booking.admin_notes = data.admin_notes

        status = booking_state.normalize_status(booking.status)
        if status == booking_state.DRAFT:
            await self.change_status(db, booking, booking_state.UNDER_REVIEW, admin, "Reviewed by admin")
            status = booking_state.UNDER_REVIEW
        if status == booking_state.UNDER_REVIEW:
            await self.change_status(
                db, booking, booking_state.AWAITING_CUSTOMER_CONFIRMATION, admin, "Price set by admin"
            )

        await notification_service.notify_customer(
            db,
            booking,
            notification_service.PRICE_SET,
            title="Your price is ready",
            body=f"Price set to {_format_price(price.total, price.currency)}. Please review and confirm.",
        )
        await audit_service.log_action(
            db,
            admin,
            "price_set",
            "booking",
            booking.id,
            old_values={"admin_price": old_price},
            new_values={
                "admin_price": price.admin_price,
                "tax": price.tax,
                "currency": price.currency,
                "locked": price.locked,
            },
        )
        return booking

    async def lock_price(self, db: AsyncSession, admin: User, booking_id: UUID) -> Booking:
        booking = await self.get_booking(db, booking_id)
        price = booking.price
        if price is None or not price.admin_price or price.admin_price <= 0:
            raise PriceLockError("Set a price before locking it", code="PRICE_NOT_SET")
        if not price.locked:
            price.locked = True
            price.locked_at = datetime.now(UTC)
            price.locked_by = admin.id
            await audit_service.log_booking_action(
                db, admin, "price_locked", booking.id, amount=price.total
            )
        return booking

    async def unlock_price(self, db: AsyncSession, admin: User, booking_id: UUID) -> Booking:
        booking = await self.get_booking(db, booking_id)
        if not booking_state.can_edit_price(booking.status):
            raise PriceLockError(
                f"Price cannot be unlocked in '{booking.status}' status", code="PRICE_LOCKED"
            )
        price = self.ensure_price(booking)
        if price.locked:
            price.locked = False
            price.locked_at = None
            price.locked_by = None
            await audit_service.log_booking_action(db, admin, "price_unlocked", booking.id)
        return booking

    async def accept_proposed_price(
        self, db: AsyncSession, admin: User, booking_id: UUID
    ) -> Booking:
        """Adopt the customer's counter-offer as the locked, confirmed price."""
        booking = await self.get_booking(db, booking_id)
        price = booking.price
        if price is None or not price.customer_proposed_price:
            raise ValidationError("There is no price proposal to accept", code="NO_PROPOSAL")
        if not booking_state.can_edit_price(booking.status):
            raise PriceLockError("Cannot change price after payment", code="PRICE_LOCKED")

        accepted = price.customer_proposed_price
        price.admin_price = accepted
        price.customer_proposed_price = None
        price.proposed_at = None
        price.proposal_note = None
        price.locked = True
        price.locked_at = datetime.now(UTC)
        price.locked_by = admin.id

        status = booking_state.normalize_status(booking.status)
        if status == booking_state.AWAITING_CUSTOMER_CONFIRMATION:
            await self.change_status(
                db, booking, booking_state.AWAITING_PAYMENT, admin, "Customer price proposal accepted"
            )

        await notification_service.notify_customer(
            db,
            booking,
            notification_service.PRICE_ACCEPTED,
            title="Price proposal accepted",
            body=f"Your proposed price of {_format_price(price.total, price.currency)} has been accepted. You can now proceed with payment.",
        )
        await audit_service.log_booking_action(
            db, admin, "price_proposal_accepted", booking.id, status, booking.status, amount=accepted
        )
        return booking

    def _assert_no_payment_held(self, booking: Booking) -> None:
        # Refunds require a cancelled booking
        if booking.payment_status in payment_state.MONEY_HELD_STATUSES:
            raise InvalidBookingStatus(
                "Booking has a submitted payment. Cancel it and refund the payment instead.",
                code="PAYMENT_IN_PROGRESS",
            )

    async def reject_booking(
        self, db: AsyncSession, admin: User, booking_id: UUID, reason: str
    ) -> Booking:
        booking = await self.get_booking(db, booking_id)
        self._assert_no_payment_held(booking)
        old_status = await self.change_status(
            db, booking, booking_state.REJECTED, admin, f"Rejected: {reason}"
        )
        booking.admin_notes = f"Rejected: {reason}"

        await notification_service.notify_customer(
            db,
            booking,
            notification_service.BOOKING_REJECTED,
            title="Booking rejected",
            body=f"Unfortunately your booking was rejected: {reason}",
        )
        await audit_service.log_booking_action(
            db, admin, "booking_rejected", booking.id, old_status, booking.status, reason=reason
        )
        return booking

    # ==================== ASSIGNMENT ====================

    def _assert_assignable(self, booking: Booking) -> None:
        if booking_state.normalize_status(booking.status) not in booking_state.ASSIGNABLE_STATUSES:
            raise InvalidBookingStatus(
                "Staff can only be assigned to confirmed, paid or in-progress bookings"
            )

    async def assign_driver(
        self,
        db: AsyncSession,
        admin: User,
        booking_id: UUID,
        driver_id: UUID | None,
        show_to_customer: bool = False,
    ) -> Booking:
        """Assign a driver, or unassign when ``driver_id`` is None."""
        booking = await self.get_booking(db, booking_id)

        if driver_id is None:
            previous = booking.assigned_driver_id
            booking.assigned_driver = None
            booking.assigned_driver_id = None
            booking.driver_response = None
            booking.driver_response_at = None
            booking.show_driver_to_customer = False
            await audit_service.log_booking_action(
                db, admin, "driver_unassigned", booking.id, driver_id=str(previous) if previous else None
            )
            return booking

        self._assert_assignable(booking)
        driver = await db.get(Driver, driver_id)
        if not driver:
            raise NotFoundError("Driver", str(driver_id))
        if driver.status != assignment_state.STAFF_ACTIVE:
            raise ValidationError(f"Driver is {driver.status} and cannot be assigned")

        booking.assigned_driver = driver
        booking.assigned_driver_id = driver.id
        booking.driver_response = assignment_state.PENDING
        booking.driver_response_at = None
        booking.show_driver_to_customer = show_to_customer

        await notification_service.notify_staff(
            db,
            driver.user_id,
            "driver",
            notification_service.NEW_ASSIGNMENT,
            title="New booking assignment",
            body=f"You have been assigned to booking #{booking.booking_number}",
            booking_id=booking.id,
        )
        await audit_service.log_booking_action(
            db, admin, "driver_assigned", booking.id, driver_id=str(driver.id)
        )
        return booking

    async def assign_guide(
        self, db: AsyncSession, admin: User, booking_id: UUID, guide_id: UUID | None
    ) -> Booking:
        """Assign a guide, or unassign when ``guide_id`` is None."""
        booking = await self.get_booking(db, booking_id)

        if guide_id is None:
            previous = booking.assigned_guide_id
            booking.assigned_guide = None
            booking.assigned_guide_id = None
            booking.guide_response = None
            booking.guide_response_at = None
            await audit_service.log_booking_action(
                db, admin, "guide_unassigned", booking.id, guide_id=str(previous) if previous else None
            )
            return booking

        self._assert_assignable(booking)
        guide = await db.get(Guide, guide_id)
        if not guide:
            raise NotFoundError("Guide", str(guide_id))
        if guide.status != assignment_state.STAFF_ACTIVE:
            raise ValidationError(f"Guide is {guide.status} and cannot be assigned")

        booking.assigned_guide = guide
        booking.assigned_guide_id = guide.id
        booking.guide_response = assignment_state.PENDING
        booking.guide_response_at = None

        await notification_service.notify_staff(
            db,
            guide.user_id,
            "guide",
            notification_service.NEW_ASSIGNMENT,
            title="New booking assignment",
            body=f"You have been assigned to booking #{booking.booking_number}",
            booking_id=booking.id,
        )
        await audit_service.log_booking_action(
            db, admin, "guide_assigned", booking.id, guide_id=str(guide.id)
        )
        return booking

    # ==================== DRIVER / GUIDE ====================

    async def list_assignments(
        self, db: AsyncSession, profile: Driver | Guide, role: str, status: str | None = None
    ) -> list[Booking]:
        column = Booking.assigned_driver_id if role == "driver" else Booking.assigned_guide_id
        query = select(Booking).where(column == profile.id)
        if status:
            query = query.where(Booking.status == booking_state.normalize_status(status))
        result = await db.execute(query.order_by(Booking.created_at.desc()))
        return list(result.scalars().all())

    def _assert_assignee(self, booking: Booking, profile: Driver | Guide, role: str) -> None:
        assigned_id = booking.assigned_driver_id if role == "driver" else booking.assigned_guide_id
        if assigned_id != profile.id:
            raise AuthorizationError("This booking is not assigned to you")

    async def respond_to_assignment(
        self,
        db: AsyncSession,
        user: User,
        profile: Driver | Guide,
        role: str,
        booking_id: UUID,
        accept: bool,
        reason: str | None = None,
    ) -> Booking:
        """Driver or guide accepts or declines an assignment.

        Accepting starts the trip for paid or confirmed bookings. Declining
        clears the assignment so an admin can pick someone else.
        """
        booking = await self.get_booking(db, booking_id)
        self._assert_assignee(booking, profile, role)

        response_attr = f"{role}_response"
        target = assignment_state.ACCEPTED if accept else assignment_state.REJECTED
        assignment_state.assert_response_transition(getattr(booking, response_attr), target)

        setattr(booking, response_attr, target)
        setattr(booking, f"{role}_response_at", datetime.now(UTC))

        if accept:
            status = booking_state.normalize_status(booking.status)
            if status in (booking_state.PAID, booking_state.CONFIRMED):
                await self.change_status(
                    db, booking, booking_state.IN_PROGRESS, user, f"{role.capitalize()} accepted assignment"
                )
            await notification_service.notify_admins(
                db,
                notification_service.ASSIGNMENT_ACCEPTED,
                title="Assignment accepted",
                body=f"{profile.full_name} accepted booking #{booking.booking_number}",
                booking_id=booking.id,
            )
        else:
            if role == "driver":
                booking.assigned_driver = None
                booking.assigned_driver_id = None
                booking.show_driver_to_customer = False
            else:
                booking.assigned_guide = None
                booking.assigned_guide_id = None
            suffix = f": {reason}" if reason else ""
            await notification_service.notify_admins(
                db,
                notification_service.ASSIGNMENT_REJECTED,
                title="Assignment declined",
                body=f"{profile.full_name} declined booking #{booking.booking_number}{suffix}",
                booking_id=booking.id,
            )

        await audit_service.log_booking_action(
            db, user, f"assignment_{target}", booking.id, role=role, reason=reason
        )
        return booking

    async def complete_booking(
        self,
        db: AsyncSession,
        user: User,
        booking_id: UUID,
        profile: Driver | Guide | None = None,
        role: str | None = None,
    ) -> Booking:
        """Finish a trip. Staff must have accepted it; admins may always complete."""
        booking = await self.get_booking(db, booking_id)
        if user.role != "admin":
            if profile is None or role is None:
                raise AuthorizationError("Only the assigned staff member can complete this booking")
            self._assert_assignee(booking, profile, role)
            if getattr(booking, f"{role}_response") != assignment_state.ACCEPTED:
                raise InvalidBookingStatus("Accept the assignment before completing it")

        if booking.payment_status != payment_state.PAID:
            raise InvalidBookingStatus(
                "Payment must be completed before the booking can be completed",
                code="PAYMENT_NOT_COMPLETED",
            )
        old_status = await self.change_status(
            db, booking, booking_state.COMPLETED, user, f"Completed by {user.role}"
        )
        await review_service.schedule_prompt(db, booking)

        await notification_service.notify_customer(
            db,
            booking,
            notification_service.BOOKING_COMPLETED,
            title="Trip completed",
            body="Thank you for travelling with us",
        )
        await audit_service.log_booking_action(
            db, user, "booking_completed", booking.id, old_status, booking.status
        )
        return booking


booking_workflow = BookingWorkflowService()
