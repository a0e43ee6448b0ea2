"""Booking ledger interface.

All ledger backends must implement this interface. The ledger only stores
bookings and applies compare-and-swap writes; it never decides whether a
transition is legal.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from app.domain.booking_state import BookingStatus
from app.schemas.booking import BookingSnapshot, StatusEventSnapshot


class CasOutcome(str, Enum):
    """Result of a compare-and-swap status write."""

    SUCCESS = "success"
    CONFLICT = "conflict"  # Stored status no longer matches the expected one
    NOT_FOUND = "not_found"


class ProofChange(str, Enum):
    """What a transition does to the booking's payment proof."""

    ATTACH = "attach"
    VERIFY = "verify"
    REJECT = "reject"


@dataclass(frozen=True)
class ProofUpdate:
    """Payment proof change applied atomically with a status swap."""

    change: ProofChange
    file_url: str | None = None
    content_type: str | None = None
    size_bytes: int | None = None
    submitted_by: UUID | None = None

    @classmethod
    def attach(
        cls,
        file_url: str,
        content_type: str,
        size_bytes: int,
        submitted_by: UUID | None,
    ) -> "ProofUpdate":
        return cls(
            change=ProofChange.ATTACH,
            file_url=file_url,
            content_type=content_type,
            size_bytes=size_bytes,
            submitted_by=submitted_by,
        )

    @classmethod
    def verify(cls) -> "ProofUpdate":
        return cls(change=ProofChange.VERIFY)

    @classmethod
    def reject(cls) -> "ProofUpdate":
        return cls(change=ProofChange.REJECT)


@dataclass(frozen=True)
class TransitionRecord:
    """Who performed a transition, for the status history."""

    action: str
    actor_id: UUID | None
    actor_role: str


@dataclass(frozen=True)
class NewBooking:
    """Fields of a booking about to be persisted in WAITING_PAYMENT."""

    room_id: str
    property_id: str
    guest_user_id: UUID
    tenant_owner_id: UUID
    check_in: date
    check_out: date
    guests: int
    total_amount: int
    currency: str


class BookingLedger(ABC):
    """Abstract base class for booking storage."""

    @abstractmethod
    async def insert(self, booking: NewBooking) -> BookingSnapshot:
        """Persist a new booking in WAITING_PAYMENT with its creation event.

        Args:
            booking: Validated booking fields

        Returns:
            BookingSnapshot of the stored booking
        """

    @abstractmethod
    async def load(self, booking_id: UUID) -> BookingSnapshot:
        """Load a booking.

        Raises:
            BookingNotFound: If no booking has this ID
        """

    @abstractmethod
    async def compare_and_swap_status(
        self,
        booking_id: UUID,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        proof_update: ProofUpdate | None = None,
        record: TransitionRecord | None = None,
    ) -> CasOutcome:
        """Write a new status only if the stored one still equals expected_status.

        The proof update and history record are applied in the same atomic
        step. A write where new_status equals expected_status still counts
        as a transition and bumps the booking version.

        Args:
            booking_id: Booking to update
            expected_status: Status the caller read before deciding
            new_status: Status decided by the transition engine
            proof_update: Optional payment proof change
            record: Optional history record for the transition

        Returns:
            CasOutcome
        """

    @abstractmethod
    async def list_bookings(
        self,
        *,
        guest_user_id: UUID | None = None,
        tenant_owner_id: UUID | None = None,
        status: BookingStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[BookingSnapshot], int]:
        """List bookings newest first.

        Returns:
            Tuple of (page of bookings, total matching count)
        """

    @abstractmethod
    async def list_due_for_completion(self, today: date, limit: int) -> list[UUID]:
        """IDs of PROCESSING bookings whose checkout date is on or before today."""

    @abstractmethod
    async def history(self, booking_id: UUID) -> list[StatusEventSnapshot]:
        """Status history of a booking, oldest first.

        Raises:
            BookingNotFound: If no booking has this ID
        """
