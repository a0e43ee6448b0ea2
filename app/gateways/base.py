"""Interfaces to the services bookings depend on.

Catalog, blob store and notification delivery are owned by other services.
Adapters here only talk to them; booking rules live in the booking service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID


class CatalogError(Exception):
    """Catalog service could not be reached or answered with an error."""


@dataclass(frozen=True)
class RoomQuote:
    """Room ownership and pricing as supplied by the catalog."""

    room_id: str
    property_id: str
    tenant_owner_id: UUID
    base_price: int  # per night, smallest currency unit
    currency: str


@dataclass(frozen=True)
class StoredObject:
    """Reference returned by the blob store for an uploaded file."""

    url: str
    size_bytes: int
    content_type: str


class NotificationKind(str, Enum):
    """Booking notifications sent to guests and tenants."""

    BOOKING_CREATED = "booking_created"
    PAYMENT_PROOF_SUBMITTED = "payment_proof_submitted"
    BOOKING_APPROVED = "booking_approved"
    PAYMENT_REJECTED = "payment_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_REMINDER = "booking_reminder"
    BOOKING_COMPLETED = "booking_completed"


class CatalogGateway(ABC):
    """Abstract base class for the property/room catalog."""

    @abstractmethod
    async def get_room_quote(self, room_id: str) -> RoomQuote | None:
        """Get owner and nightly price of a room.

        Args:
            room_id: Catalog room ID

        Returns:
            RoomQuote, or None if the room does not exist

        Raises:
            CatalogError: If the catalog is unreachable
        """

    @abstractmethod
    async def is_room_available(self, room_id: str, check_in: date, check_out: date) -> bool:
        """Check that no other stay overlaps the date range.

        Raises:
            CatalogError: If the catalog is unreachable
        """


class NotificationSink(ABC):
    """Fire-and-forget notification delivery."""

    @abstractmethod
    async def dispatch(self, booking_id: UUID, kind: NotificationKind, recipient: UUID) -> None:
        """Hand a notification over for asynchronous delivery.

        Args:
            booking_id: Booking the notification is about
            kind: Notification kind
            recipient: User to notify
        """
