"""Audit trail service for admin actions and customer booking activity."""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.admin import AuditLog
from app.models.user import User


class AuditService:
    """Append-only audit logging."""

    # Actions that move money or change what a customer owes
    FINANCIAL_ACTIONS = {
        "price_set",
        "price_locked",
        "price_unlocked",
        "price_proposal_accepted",
        "payment_submitted",
        "payment_confirmed",
        "payment_rejected",
        "payment_refunded",
        "payment_settled_by_webhook",
    }

    async def log_action(
        self,
        db: AsyncSession,
        actor: User | None,
        action: str,
        resource_type: str,
        resource_id: UUID | None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Record one action.

        Args:
            db: Database session
            actor: User performing the action (None for system actions)
            action: Action name (e.g., "price_set")
            resource_type: Resource type (e.g., "booking", "payment")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state
            ip_address: Client IP
            user_agent: Client user agent

        Returns:
            Created audit log entry
        """
        audit = AuditLog(
            user_id=actor.id if actor else None,
            actor_role=actor.role if actor else "system",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(audit)
        return audit

    async def log_booking_action(
        self,
        db: AsyncSession,
        actor: User | None,
        action: str,
        booking_id: UUID,
        old_status: str | None = None,
        new_status: str | None = None,
        **details: Any,
    ) -> AuditLog:
        """Log a booking workflow step with its status change."""
        old_values = {"status": old_status} if old_status else None
        new_values: dict[str, Any] = {"status": new_status} if new_status else {}
        new_values.update({k: v for k, v in details.items() if v is not None})
        return await self.log_action(
            db=db,
            actor=actor,
            action=action,
            resource_type="booking",
            resource_id=booking_id,
            old_values=old_values,
            new_values=new_values or None,
        )

    async def log_payment_action(
        self,
        db: AsyncSession,
        actor: User | None,
        action: str,
        payment_id: UUID,
        old_status: str | None,
        new_status: str,
        amount: int | None = None,
        method: str | None = None,
    ) -> AuditLog:
        """Log payment status change."""
        new_values: dict[str, Any] = {"status": new_status}
        if amount is not None:
            new_values["amount"] = amount
        if method:
            new_values["method"] = method
        return await self.log_action(
            db=db,
            actor=actor,
            action=action,
            resource_type="payment",
            resource_id=payment_id,
            old_values={"status": old_status} if old_status else None,
            new_values=new_values,
        )


audit_service = AuditService()
