"""Notification Service for booking lifecycle events.

Runs inside the Celery worker. Rendering and channel selection (email, push)
belong to the notification service; this client only hands over the event.
"""

import logging
from uuid import UUID

import httpx

from app.config import settings
from app.gateways.base import NotificationKind

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """The notification service rejected or did not receive an event."""


class NotificationService:
    """Client for the notification service's REST API."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None) -> None:
        """Initialize notification service."""
        self._base_url = base_url if base_url is not None else settings.notification_base_url
        self._api_key = api_key if api_key is not None else settings.notification_api_key
        self._http_client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._base_url)

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
            self._http_client = httpx.AsyncClient(
                base_url=(self._base_url or "").rstrip("/"),
                headers=headers,
                timeout=settings.notification_timeout_seconds,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def deliver(self, booking_id: UUID, kind: NotificationKind, recipient: UUID) -> bool:
        """Send a booking event to the notification service.

        Args:
            booking_id: Booking the event is about
            kind: Notification kind
            recipient: User to notify

        Returns:
            bool: True if delivered, False if delivery is not configured

        Raises:
            NotificationDeliveryError: If the request failed
        """
        kind = NotificationKind(kind)
        if not self.enabled:
            logger.info(
                f"Notification delivery disabled, dropping {kind.value} "
                f"for booking {booking_id} to {recipient}"
            )
            return False

        try:
            response = await self.http_client.post(
                "/notifications",
                json={
                    "booking_id": str(booking_id),
                    "kind": kind.value,
                    "recipient_id": str(recipient),
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(
                f"Delivery of {kind.value} for booking {booking_id} failed: {e}"
            ) from e

        logger.info(f"Delivered {kind.value} for booking {booking_id} to {recipient}")
        return True
