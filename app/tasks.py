"""Celery background tasks.

This module contains the background tasks for:
- Booking notification delivery
- Completing stays after checkout
"""

import asyncio
import logging
from datetime import date
from uuid import UUID

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import settings
from app.core.exceptions import CollaboratorUnavailable
from app.database import create_standalone_engine
from app.gateways.base import NotificationKind
from app.services.booking_service import local_today
from app.services.factory import build_booking_service
from app.services.notification_service import NotificationDeliveryError, NotificationService

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


# ==================== NOTIFICATION TASKS ====================


@shared_task(bind=True, max_retries=3)
def send_booking_notification(self, booking_id: str, kind: str, recipient: str):
    """Deliver one booking notification, retrying when delivery fails."""
    try:
        delivered = run_async(
            _send_booking_notification(UUID(booking_id), NotificationKind(kind), UUID(recipient))
        )
    except NotificationDeliveryError as exc:
        logger.warning(f"{exc} (attempt {self.request.retries + 1})")
        raise self.retry(exc=exc, countdown=settings.notification_retry_delay_seconds)

    return {"status": "delivered" if delivered else "skipped", "kind": kind}


async def _send_booking_notification(
    booking_id: UUID, kind: NotificationKind, recipient: UUID
) -> bool:
    notification_service = NotificationService()
    try:
        return await notification_service.deliver(booking_id, kind, recipient)
    finally:
        await notification_service.close()


# ==================== LIFECYCLE TASKS ====================


@shared_task(bind=True, max_retries=3)
def complete_finished_bookings(self, today: str | None = None):
    """Complete processing bookings whose checkout date has passed.

    Runs daily at the configured sweep hour. ``today`` (ISO date) overrides
    the local date, for backfills.
    """
    sweep_date = date.fromisoformat(today) if today else local_today()
    try:
        result = run_async(_complete_finished_bookings(sweep_date))
    except CollaboratorUnavailable as exc:
        raise self.retry(exc=exc, countdown=300)

    return {"status": "success", "date": sweep_date.isoformat(), **result}


async def _complete_finished_bookings(today: date) -> dict[str, int]:
    """Async implementation of the completion sweep."""
    # Fresh engine: each task run has its own event loop
    engine = create_standalone_engine()
    try:
        booking_service = build_booking_service(async_sessionmaker(engine, expire_on_commit=False))
        result = await booking_service.complete_due_bookings(today)
        await booking_service.drain_side_effects()
        return result
    finally:
        await engine.dispose()
