"""In-memory booking ledger.

Used for local development and tests. A single asyncio lock serialises
writes, which gives the same compare-and-swap guarantees as the SQL ledger
within one process.
"""

import asyncio
import uuid
from datetime import UTC, date, datetime
from uuid import UUID

from app.core.exceptions import BookingNotFound
from app.domain.booking_state import BookingStatus
from app.ledger.base import (
    BookingLedger,
    CasOutcome,
    NewBooking,
    ProofChange,
    ProofUpdate,
    TransitionRecord,
)
from app.schemas.booking import BookingSnapshot, PaymentProofSnapshot, StatusEventSnapshot


class InMemoryBookingLedger(BookingLedger):
    """Dict-backed ledger keyed by booking ID."""

    def __init__(self) -> None:
        self._bookings: dict[UUID, BookingSnapshot] = {}
        self._events: dict[UUID, list[StatusEventSnapshot]] = {}
        self._rejected_proofs: dict[UUID, list[PaymentProofSnapshot]] = {}
        self._lock = asyncio.Lock()

    async def insert(self, booking: NewBooking) -> BookingSnapshot:
        now = datetime.now(UTC)
        snapshot = BookingSnapshot(
            id=uuid.uuid4(),
            room_id=booking.room_id,
            property_id=booking.property_id,
            guest_user_id=booking.guest_user_id,
            tenant_owner_id=booking.tenant_owner_id,
            status=BookingStatus.WAITING_PAYMENT,
            check_in=booking.check_in,
            check_out=booking.check_out,
            guests=booking.guests,
            total_amount=booking.total_amount,
            currency=booking.currency,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._bookings[snapshot.id] = snapshot
            self._events[snapshot.id] = [
                StatusEventSnapshot(
                    booking_id=snapshot.id,
                    action="create",
                    from_status=None,
                    to_status=BookingStatus.WAITING_PAYMENT,
                    actor_id=booking.guest_user_id,
                    actor_role="guest",
                    created_at=now,
                )
            ]
        return snapshot

    async def load(self, booking_id: UUID) -> BookingSnapshot:
        async with self._lock:
            snapshot = self._bookings.get(booking_id)
        if snapshot is None:
            raise BookingNotFound(booking_id)
        return snapshot

    async def compare_and_swap_status(
        self,
        booking_id: UUID,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        proof_update: ProofUpdate | None = None,
        record: TransitionRecord | None = None,
    ) -> CasOutcome:
        async with self._lock:
            current = self._bookings.get(booking_id)
            if current is None:
                return CasOutcome.NOT_FOUND
            if current.status != expected_status:
                return CasOutcome.CONFLICT

            now = datetime.now(UTC)
            self._bookings[booking_id] = current.model_copy(
                update={
                    "status": BookingStatus(new_status),
                    "payment_proof": self._apply_proof(current, proof_update, now),
                    "version": current.version + 1,
                    "updated_at": now,
                }
            )
            if record is not None:
                self._events[booking_id].append(
                    StatusEventSnapshot(
                        booking_id=booking_id,
                        action=record.action,
                        from_status=current.status,
                        to_status=BookingStatus(new_status),
                        actor_id=record.actor_id,
                        actor_role=record.actor_role,
                        created_at=now,
                    )
                )
            return CasOutcome.SUCCESS

    def _apply_proof(
        self,
        current: BookingSnapshot,
        proof_update: ProofUpdate | None,
        now: datetime,
    ) -> PaymentProofSnapshot | None:
        proof = current.payment_proof
        if proof_update is None:
            return proof

        if proof_update.change == ProofChange.ATTACH:
            return PaymentProofSnapshot(
                file_url=proof_update.file_url,
                content_type=proof_update.content_type,
                size_bytes=proof_update.size_bytes,
                submitted_at=now,
            )
        if proof is None:
            return None
        if proof_update.change == ProofChange.VERIFY:
            return proof.model_copy(update={"verified_at": now})

        # Rejected proofs are kept aside, never dropped
        self._rejected_proofs.setdefault(current.id, []).append(proof)
        return None

    async def list_bookings(
        self,
        *,
        guest_user_id: UUID | None = None,
        tenant_owner_id: UUID | None = None,
        status: BookingStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[BookingSnapshot], int]:
        async with self._lock:
            matches = [
                b
                for b in self._bookings.values()
                if (guest_user_id is None or b.guest_user_id == guest_user_id)
                and (tenant_owner_id is None or b.tenant_owner_id == tenant_owner_id)
                and (status is None or b.status == status)
            ]
        matches.sort(key=lambda b: b.created_at, reverse=True)
        offset = (page - 1) * page_size
        return matches[offset : offset + page_size], len(matches)

    async def list_due_for_completion(self, today: date, limit: int) -> list[UUID]:
        async with self._lock:
            due = [
                b
                for b in self._bookings.values()
                if b.status == BookingStatus.PROCESSING and b.check_out <= today
            ]
        due.sort(key=lambda b: b.check_out)
        return [b.id for b in due[:limit]]

    async def history(self, booking_id: UUID) -> list[StatusEventSnapshot]:
        async with self._lock:
            events = self._events.get(booking_id)
        if events is None:
            raise BookingNotFound(booking_id)
        return list(events)

    def rejected_proofs(self, booking_id: UUID) -> list[PaymentProofSnapshot]:
        """Proofs a tenant has rejected for this booking."""
        return list(self._rejected_proofs.get(booking_id, []))
