"""Notification sink that hands deliveries to the Celery worker."""

import asyncio
from uuid import UUID

from app.gateways.base import NotificationKind, NotificationSink
from app.worker import celery_app

SEND_NOTIFICATION_TASK = "app.tasks.send_booking_notification"


class CeleryNotificationSink(NotificationSink):
    """Enqueue notifications; delivery and retries happen in the worker."""

    async def dispatch(self, booking_id: UUID, kind: NotificationKind, recipient: UUID) -> None:
        # Publishing talks to the broker synchronously
        await asyncio.to_thread(
            celery_app.send_task,
            SEND_NOTIFICATION_TASK,
            args=[str(booking_id), NotificationKind(kind).value, str(recipient)],
        )
