"""Celery background tasks.

Notification email delivery and retention cleanup.
"""

import asyncio
import logging

from celery import shared_task

from app.config import settings
from app.database import get_db_context
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


# ==================== NOTIFICATION TASKS ====================


@shared_task(bind=True, max_retries=3)
def dispatch_notification_emails(self):
    """Email notifications that have only been delivered in-app so far."""
    try:
        sent = run_async(_dispatch_notification_emails())
        return {"status": "success", "sent": sent}
    except Exception as exc:
        logger.error(f"Notification email dispatch failed: {exc}")
        raise self.retry(exc=exc, countdown=60)


async def _dispatch_notification_emails() -> int:
    try:
        async with get_db_context() as db:
            return await notification_service.dispatch_pending_emails(
                db, limit=settings.notification_email_batch_size
            )
    finally:
        # The HTTP client is bound to this task's event loop
        await notification_service.close()


@shared_task
def purge_read_notifications():
    """Delete read notifications past the retention window."""
    deleted = run_async(_purge_read_notifications())
    logger.info(f"Purged {deleted} read notifications")
    return {"status": "success", "deleted": deleted}


async def _purge_read_notifications() -> int:
    async with get_db_context() as db:
        return await notification_service.purge_read_notifications(
            db, settings.notification_retention_days
        )
