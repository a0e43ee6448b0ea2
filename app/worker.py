"""Celery worker configuration.

This module sets up Celery for background task processing:
- Booking notification delivery
- Daily completion of stays past checkout
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

# Create Celery app
celery_app = Celery(
    "staybook_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result backend settings
    result_expires=3600,

    # Retry settings
    task_default_retry_delay=settings.notification_retry_delay_seconds,
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Complete stays whose checkout has passed, daily (local time)
        "complete-finished-bookings": {
            "task": "app.tasks.complete_finished_bookings",
            "schedule": crontab(hour=settings.completion_sweep_hour, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
