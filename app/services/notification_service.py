"""Notification service.

In-app notifications are written in the same transaction as the workflow
step that caused them. Email delivery happens later, from a Celery task that
picks up rows with ``email_sent = False``.
"""

import logging
from datetime import UTC, datetime, timedelta
from html import escape
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.booking import Booking
from app.models.notification import Notification
from app.models.user import User

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for in-app notifications and their email delivery."""

    # Notification types
    NEW_BOOKING = "new_booking"
    BOOKING_SUBMITTED = "booking_submitted"
    PRICE_SET = "price_set"
    PRICE_PROPOSED = "price_proposed"
    PRICE_CONFIRMED = "price_confirmed"
    PRICE_ACCEPTED = "price_accepted"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_REFUNDED = "payment_refunded"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_STATUS_CHANGED = "booking_status_changed"
    BOOKING_COMPLETED = "booking_completed"
    NEW_ASSIGNMENT = "new_assignment"
    ASSIGNMENT_ACCEPTED = "assignment_accepted"
    ASSIGNMENT_REJECTED = "assignment_rejected"
    REVIEW_NEEDS_FOLLOWUP = "review_needs_followup"

    def __init__(self) -> None:
        """Initialize notification service."""
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== IN-APP NOTIFICATIONS ====================

    async def create_notification(
        self,
        db: AsyncSession,
        user_id: UUID | None,
        recipient_type: str,
        title: str,
        body: str,
        notification_type: str,
        booking_id: UUID | None = None,
    ) -> Notification:
        """Create an in-app notification.

        Args:
            db: Database session
            user_id: User to notify (None for an admin broadcast)
            recipient_type: customer, admin, driver or guide
            title: Notification title
            body: Notification body text
            notification_type: Type of notification
            booking_id: Related booking ID

        Returns:
            Notification: Created notification
        """
        notification = Notification(
            user_id=user_id,
            recipient_type=recipient_type,
            title=title,
            body=body,
            notification_type=notification_type,
            booking_id=booking_id,
        )
        db.add(notification)
        return notification

    async def notify_customer(
        self,
        db: AsyncSession,
        booking: Booking,
        notification_type: str,
        title: str,
        body: str,
    ) -> Notification:
        """Notify the customer who owns the booking."""
        return await self.create_notification(
            db,
            user_id=booking.user_id,
            recipient_type="customer",
            title=title,
            body=f"{body} (Booking #{booking.booking_number})",
            notification_type=notification_type,
            booking_id=booking.id,
        )

    async def notify_admins(
        self,
        db: AsyncSession,
        notification_type: str,
        title: str,
        body: str,
        booking_id: UUID | None = None,
    ) -> list[Notification]:
        """Notify every active admin, or leave a broadcast if there are none."""
        result = await db.execute(
            select(User.id).where(User.role == "admin", User.is_active == True)  # noqa: E712
        )
        admin_ids = list(result.scalars().all())
        targets: list[UUID | None] = admin_ids or [None]
        return [
            await self.create_notification(
                db,
                user_id=admin_id,
                recipient_type="admin",
                title=title,
                body=body,
                notification_type=notification_type,
                booking_id=booking_id,
            )
            for admin_id in targets
        ]

    async def notify_staff(
        self,
        db: AsyncSession,
        user_id: UUID,
        role: str,
        notification_type: str,
        title: str,
        body: str,
        booking_id: UUID | None = None,
    ) -> Notification:
        """Notify an assigned driver or guide."""
        return await self.create_notification(
            db,
            user_id=user_id,
            recipient_type=role,
            title=title,
            body=body,
            notification_type=notification_type,
            booking_id=booking_id,
        )

    # ==================== EMAIL (SENDGRID) ====================

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_content: HTML body
            text_content: Plain text body

        Returns:
            bool: True if sent successfully
        """
        if not settings.sendgrid_api_key:
            return False

        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": settings.email_from_address,
                "name": settings.email_from_name,
            },
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        try:
            response = await self.http_client.post(
                "https://api.sendgrid.com/v3/mail/send",
                headers={
                    "Authorization": f"Bearer {settings.sendgrid_api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.warning(f"SendGrid request to {to_email} failed: {e}")
            return False

        if response.status_code not in (200, 202):
            logger.warning(f"SendGrid rejected email to {to_email}: {response.status_code}")
            return False
        return True

    def _generate_email_html(self, title: str, body: str) -> str:
        """Generate simple HTML email content."""
        return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="utf-8"></head>
        <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif;
                     max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
            <div style="background-color: #f9fafb; border-radius: 8px; padding: 24px;">
                <h1 style="color: #111827; font-size: 22px;">{escape(title)}</h1>
                <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">{escape(body)}</p>
            </div>
            <p style="color: #9ca3af; font-size: 12px; text-align: center;">
                &copy; {datetime.now(UTC).year} {escape(settings.email_from_name)}
            </p>
        </body>
        </html>
        """

    async def dispatch_pending_emails(self, db: AsyncSession, limit: int = 50) -> int:
        """Email notifications that have not been delivered yet.

        Admin broadcasts go to ``admin_notification_email`` when configured.
        Each delivered email is committed as soon as it is sent.

        Returns:
            int: Number of emails sent
        """
        result = await db.execute(
            select(Notification, User.email)
            .outerjoin(User, Notification.user_id == User.id)
            .where(Notification.email_sent == False)  # noqa: E712
            .order_by(Notification.created_at)
            .limit(limit)
        )
        sent = 0
        for notification, email in result.all():
            recipient = email or (
                settings.admin_notification_email if notification.recipient_type == "admin" else None
            )
            if not recipient:
                continue
            if await self.send_email(
                to_email=recipient,
                subject=notification.title,
                html_content=self._generate_email_html(notification.title, notification.body),
                text_content=notification.body,
            ):
                notification.email_sent = True
                # Persist each delivery so a later failure cannot resend it
                await db.commit()
                sent += 1
        if sent:
            logger.info(f"Dispatched {sent} notification emails")
        return sent

    async def purge_read_notifications(self, db: AsyncSession, older_than_days: int) -> int:
        """Delete read notifications older than the retention window."""
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        result = await db.execute(
            delete(Notification).where(
                Notification.is_read == True,  # noqa: E712
                Notification.created_at < cutoff,
            )
        )
        return result.rowcount or 0

    # ==================== QUERIES ====================

    @staticmethod
    def visible_to(user: User):
        """Filter for notifications a user may see (admins also see broadcasts)."""
        if user.role == "admin":
            return or_(
                Notification.user_id == user.id,
                (Notification.user_id.is_(None)) & (Notification.recipient_type == "admin"),
            )
        return Notification.user_id == user.id


notification_service = NotificationService()
