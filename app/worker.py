"""Celery worker configuration.

Periodic jobs:
- Email delivery for in-app notifications
- Cleanup of old read notifications
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "volga_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Europe/Moscow",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    beat_schedule={
        "dispatch-notification-emails": {
            "task": "app.tasks.dispatch_notification_emails",
            "schedule": crontab(minute="*/5"),
        },
        # Daily at 3 AM
        "purge-read-notifications": {
            "task": "app.tasks.purge_read_notifications",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
