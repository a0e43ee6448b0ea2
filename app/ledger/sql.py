"""SQLAlchemy-backed booking ledger.

Compare-and-swap is a single conditional UPDATE on (id, status); the row
count tells whether this writer won. Proof rows and the history event are
written in the same transaction.
"""

import uuid
from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.exceptions import BookingNotFound
from app.core.immutability import register_immutability_enforcement
from app.domain.booking_state import BookingStatus
from app.ledger.base import (
    BookingLedger,
    CasOutcome,
    NewBooking,
    ProofChange,
    ProofUpdate,
    TransitionRecord,
)
from app.models.booking import Booking, BookingStatusEvent, PaymentProof
from app.schemas.booking import BookingSnapshot, StatusEventSnapshot


class SqlBookingLedger(BookingLedger):
    """Ledger storing bookings in the relational database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        register_immutability_enforcement()

    async def insert(self, booking: NewBooking) -> BookingSnapshot:
        now = datetime.now(UTC)
        row = Booking(
            id=uuid.uuid4(),
            room_id=booking.room_id,
            property_id=booking.property_id,
            guest_user_id=booking.guest_user_id,
            tenant_owner_id=booking.tenant_owner_id,
            check_in=booking.check_in,
            check_out=booking.check_out,
            guests=booking.guests,
            total_amount=booking.total_amount,
            currency=booking.currency,
            status=BookingStatus.WAITING_PAYMENT.value,
            version=1,
            created_at=now,
            updated_at=now,
            payment_proofs=[],
        )
        async with self._session_factory() as db:
            async with db.begin():
                db.add(row)
                db.add(
                    BookingStatusEvent(
                        booking_id=row.id,
                        action="create",
                        from_status=None,
                        to_status=BookingStatus.WAITING_PAYMENT.value,
                        actor_id=booking.guest_user_id,
                        actor_role="guest",
                        created_at=now,
                    )
                )
                await db.flush()
                snapshot = BookingSnapshot.model_validate(row)
        return snapshot

    async def load(self, booking_id: UUID) -> BookingSnapshot:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking)
                .options(selectinload(Booking.payment_proofs))
                .where(Booking.id == booking_id)
            )
            booking = result.scalar_one_or_none()
            if booking is None:
                raise BookingNotFound(booking_id)
            return BookingSnapshot.model_validate(booking)

    async def compare_and_swap_status(
        self,
        booking_id: UUID,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        proof_update: ProofUpdate | None = None,
        record: TransitionRecord | None = None,
    ) -> CasOutcome:
        expected = BookingStatus(expected_status).value
        target = BookingStatus(new_status).value
        now = datetime.now(UTC)

        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Booking)
                    .where(Booking.id == booking_id, Booking.status == expected)
                    .values(status=target, version=Booking.version + 1, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    exists = await db.scalar(select(Booking.id).where(Booking.id == booking_id))
                    return CasOutcome.NOT_FOUND if exists is None else CasOutcome.CONFLICT

                if proof_update is not None:
                    await self._apply_proof(db, booking_id, proof_update, now)

                if record is not None:
                    db.add(
                        BookingStatusEvent(
                            booking_id=booking_id,
                            action=record.action,
                            from_status=expected,
                            to_status=target,
                            actor_id=record.actor_id,
                            actor_role=record.actor_role,
                            created_at=now,
                        )
                    )
        return CasOutcome.SUCCESS

    async def _apply_proof(
        self,
        db: AsyncSession,
        booking_id: UUID,
        proof_update: ProofUpdate,
        now: datetime,
    ) -> None:
        """Write the proof change inside the caller's transaction."""
        if proof_update.change == ProofChange.ATTACH:
            db.add(
                PaymentProof(
                    booking_id=booking_id,
                    file_url=proof_update.file_url,
                    content_type=proof_update.content_type,
                    size_bytes=proof_update.size_bytes,
                    submitted_by=proof_update.submitted_by,
                    submitted_at=now,
                )
            )
            return

        active = (PaymentProof.booking_id == booking_id, PaymentProof.rejected_at.is_(None))
        if proof_update.change == ProofChange.VERIFY:
            values = {"verified_at": now}
        else:
            values = {"rejected_at": now}
        await db.execute(
            update(PaymentProof)
            .where(*active)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def list_bookings(
        self,
        *,
        guest_user_id: UUID | None = None,
        tenant_owner_id: UUID | None = None,
        status: BookingStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[BookingSnapshot], int]:
        query = select(Booking)
        if guest_user_id is not None:
            query = query.where(Booking.guest_user_id == guest_user_id)
        if tenant_owner_id is not None:
            query = query.where(Booking.tenant_owner_id == tenant_owner_id)
        if status is not None:
            query = query.where(Booking.status == BookingStatus(status).value)

        async with self._session_factory() as db:
            total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

            offset = (page - 1) * page_size
            result = await db.execute(
                query.options(selectinload(Booking.payment_proofs))
                .order_by(Booking.created_at.desc())
                .offset(offset)
                .limit(page_size)
            )
            bookings = [BookingSnapshot.model_validate(b) for b in result.scalars().all()]
        return bookings, total

    async def list_due_for_completion(self, today: date, limit: int) -> list[UUID]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking.id)
                .where(
                    Booking.status == BookingStatus.PROCESSING.value,
                    Booking.check_out <= today,
                )
                .order_by(Booking.check_out)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def history(self, booking_id: UUID) -> list[StatusEventSnapshot]:
        async with self._session_factory() as db:
            exists = await db.scalar(select(Booking.id).where(Booking.id == booking_id))
            if exists is None:
                raise BookingNotFound(booking_id)

            result = await db.execute(
                select(BookingStatusEvent)
                .where(BookingStatusEvent.booking_id == booking_id)
                .order_by(BookingStatusEvent.created_at)
            )
            return [StatusEventSnapshot.model_validate(e) for e in result.scalars().all()]
