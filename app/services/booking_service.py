"""Booking Service for the booking lifecycle.

Every action on an existing booking follows the same steps:
1. Load the booking from the ledger
2. Check the actor is a party of the booking
3. Ask the state machine for the next status
4. Compare-and-swap the status in the ledger, retrying on conflict
5. Fire notifications after commit without waiting for them

Failures are raised as BookingError subclasses carrying a FailureReason.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from typing import TypeVar
from uuid import UUID
from zoneinfo import ZoneInfo

from app.config import settings
from app.core.exceptions import (
    BookingError,
    BookingNotFound,
    CollaboratorUnavailable,
    FailureReason,
    InvalidBooking,
    InvalidStatus,
    RoomUnavailable,
    Unauthorized,
    WrongRole,
)
from app.core.permissions import ActorContext, ActorRole, is_booking_party
from app.domain.booking_state import BookingAction, BookingStatus, assert_transition
from app.gateways.base import (
    CatalogError,
    CatalogGateway,
    NotificationKind,
    NotificationSink,
    StoredObject,
)
from app.ledger.base import BookingLedger, CasOutcome, NewBooking, ProofUpdate, TransitionRecord
from app.schemas.booking import BookingCreate, BookingSnapshot, StatusEventSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Notification sent after each committed action
ACTION_NOTIFICATIONS: dict[BookingAction, NotificationKind] = {
    BookingAction.UPLOAD_PROOF: NotificationKind.PAYMENT_PROOF_SUBMITTED,
    BookingAction.CANCEL: NotificationKind.BOOKING_CANCELLED,
    BookingAction.APPROVE: NotificationKind.BOOKING_APPROVED,
    BookingAction.REJECT: NotificationKind.PAYMENT_REJECTED,
    BookingAction.REMIND: NotificationKind.BOOKING_REMINDER,
    BookingAction.COMPLETE: NotificationKind.BOOKING_COMPLETED,
}


def local_today() -> date:
    """Today's date in the platform's timezone."""
    return datetime.now(ZoneInfo(settings.timezone)).date()


class BookingService:
    """Service orchestrating booking transitions against the ledger."""

    def __init__(
        self,
        ledger: BookingLedger,
        catalog: CatalogGateway,
        notifier: NotificationSink,
        max_attempts: int | None = None,
        ledger_timeout: float | None = None,
        today: Callable[[], date] = local_today,
    ) -> None:
        self.ledger = ledger
        self.catalog = catalog
        self.notifier = notifier
        self.max_attempts = max(1, max_attempts or settings.transition_max_attempts)
        self.ledger_timeout = ledger_timeout or settings.ledger_timeout_seconds
        self._today = today
        self._side_effects: set[asyncio.Task] = set()

    # ==================== CREATION ====================

    async def create_booking(self, actor: ActorContext, data: BookingCreate) -> BookingSnapshot:
        """Create a booking in WAITING_PAYMENT.

        Args:
            actor: Guest creating the booking
            data: Room, dates and guest count

        Returns:
            BookingSnapshot: The stored booking

        Raises:
            WrongRole: If the actor is not a guest
            InvalidBooking: If dates or guest count are invalid
            RoomUnavailable: If the room does not exist or is taken
            CollaboratorUnavailable: If the catalog or ledger cannot be reached
        """
        if actor.role != ActorRole.GUEST or actor.actor_id is None:
            raise WrongRole(action="create", role=actor.role.value)

        if data.check_in >= data.check_out:
            raise InvalidBooking(field="check_out", rule="after_check_in")
        if data.guests <= 0:
            raise InvalidBooking(field="guests", rule="positive")

        try:
            quote = await self.catalog.get_room_quote(data.room_id)
            available = quote is not None and await self.catalog.is_room_available(
                data.room_id, data.check_in, data.check_out
            )
        except CatalogError as e:
            raise CollaboratorUnavailable(collaborator="catalog") from e

        if quote is None or not available:
            raise RoomUnavailable(room_id=data.room_id)

        # Owner cannot book their own property
        if quote.tenant_owner_id == actor.actor_id:
            raise InvalidBooking(field="room_id", rule="own_property")

        nights = (data.check_out - data.check_in).days
        new_booking = NewBooking(
            room_id=data.room_id,
            property_id=quote.property_id,
            guest_user_id=actor.actor_id,
            tenant_owner_id=quote.tenant_owner_id,
            check_in=data.check_in,
            check_out=data.check_out,
            guests=data.guests,
            total_amount=quote.base_price * nights,
            currency=quote.currency,
        )

        try:
            booking = await self._bounded(self.ledger.insert(new_booking))
        except TimeoutError as e:
            raise CollaboratorUnavailable(collaborator="ledger") from e

        logger.info(
            f"Booking {booking.id} created by guest {actor.actor_id} "
            f"for room {booking.room_id} ({booking.nights} nights, "
            f"{booking.total_amount} {booking.currency})"
        )
        self._dispatch(booking.id, NotificationKind.BOOKING_CREATED, booking.tenant_owner_id)
        return booking

    # ==================== TRANSITIONS ====================

    async def upload_payment_proof(
        self,
        booking_id: UUID,
        actor: ActorContext,
        stored: StoredObject,
    ) -> BookingSnapshot:
        """Attach a validated payment proof; WAITING_PAYMENT → WAITING_CONFIRMATION.

        The reference must already have passed PaymentProofService validation.
        """
        return await self._transition(
            booking_id,
            actor,
            BookingAction.UPLOAD_PROOF,
            proof_update=ProofUpdate.attach(
                file_url=stored.url,
                content_type=stored.content_type,
                size_bytes=stored.size_bytes,
                submitted_by=actor.actor_id,
            ),
        )

    async def cancel_booking(self, booking_id: UUID, actor: ActorContext) -> BookingSnapshot:
        """Cancel a booking (guest before proof upload, tenant before processing)."""
        return await self._transition(booking_id, actor, BookingAction.CANCEL)

    async def approve_booking(self, booking_id: UUID, actor: ActorContext) -> BookingSnapshot:
        """Approve the payment proof; WAITING_CONFIRMATION → PROCESSING."""
        return await self._transition(
            booking_id, actor, BookingAction.APPROVE, proof_update=ProofUpdate.verify()
        )

    async def reject_booking(self, booking_id: UUID, actor: ActorContext) -> BookingSnapshot:
        """Reject the payment proof; the guest has to upload a new one."""
        return await self._transition(
            booking_id, actor, BookingAction.REJECT, proof_update=ProofUpdate.reject()
        )

    async def send_reminder(self, booking_id: UUID, actor: ActorContext) -> BookingSnapshot:
        """Remind the guest of an upcoming stay. Status stays PROCESSING."""
        return await self._transition(booking_id, actor, BookingAction.REMIND)

    async def complete_booking(
        self,
        booking_id: UUID,
        actor: ActorContext,
        today: date | None = None,
    ) -> BookingSnapshot:
        """Complete a stay once its checkout date has been reached."""
        today = today or self._today()

        def checkout_reached(booking: BookingSnapshot) -> None:
            if booking.check_out > today:
                raise InvalidStatus(
                    booking.id,
                    status=booking.status.value,
                    action=BookingAction.COMPLETE.value,
                    check_out=booking.check_out.isoformat(),
                )

        return await self._transition(
            booking_id, actor, BookingAction.COMPLETE, precondition=checkout_reached
        )

    async def complete_due_bookings(self, today: date | None = None) -> dict[str, int]:
        """Complete every PROCESSING booking whose checkout has passed.

        Each booking goes through the normal transition path as the system
        actor, so a booking cancelled or completed in the meantime is skipped.

        Returns:
            dict: Counts of completed and skipped bookings
        """
        today = today or self._today()
        try:
            due = await self._bounded(
                self.ledger.list_due_for_completion(today, settings.completion_batch_size)
            )
        except TimeoutError as e:
            raise CollaboratorUnavailable(collaborator="ledger") from e

        completed = 0
        skipped = 0
        for booking_id in due:
            try:
                await self.complete_booking(booking_id, ActorContext.system(), today=today)
                completed += 1
            except BookingError as e:
                skipped += 1
                logger.warning(f"Skipped completing booking {booking_id}: {e.detail}")

        logger.info(f"Completion sweep for {today}: {completed} completed, {skipped} skipped")
        return {"completed": completed, "skipped": skipped}

    # ==================== QUERIES ====================

    async def get_booking(self, booking_id: UUID, actor: ActorContext) -> BookingSnapshot:
        """Get a booking visible to the actor."""
        booking = await self._load(booking_id)
        self._authorize(booking, actor)
        return booking

    async def booking_history(
        self, booking_id: UUID, actor: ActorContext
    ) -> list[StatusEventSnapshot]:
        """Get the status history of a booking visible to the actor."""
        await self.get_booking(booking_id, actor)
        try:
            return await self._bounded(self.ledger.history(booking_id))
        except TimeoutError as e:
            raise CollaboratorUnavailable(booking_id, collaborator="ledger") from e

    async def list_guest_bookings(
        self,
        actor: ActorContext,
        status: BookingStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[BookingSnapshot], int]:
        """List the guest's own bookings."""
        if actor.role != ActorRole.GUEST:
            raise WrongRole(action="list_bookings", role=actor.role.value)
        return await self._list(
            guest_user_id=actor.actor_id, status=status, page=page, page_size=page_size
        )

    async def list_tenant_orders(
        self,
        actor: ActorContext,
        status: BookingStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[BookingSnapshot], int]:
        """List bookings on properties the tenant owns."""
        if actor.role != ActorRole.TENANT:
            raise WrongRole(action="list_orders", role=actor.role.value)
        return await self._list(
            tenant_owner_id=actor.actor_id, status=status, page=page, page_size=page_size
        )

    async def _list(self, **filters) -> tuple[list[BookingSnapshot], int]:
        try:
            return await self._bounded(self.ledger.list_bookings(**filters))
        except TimeoutError as e:
            raise CollaboratorUnavailable(collaborator="ledger") from e

    # ==================== SIDE EFFECTS ====================

    async def drain_side_effects(self) -> None:
        """Wait for notifications still being dispatched."""
        while self._side_effects:
            await asyncio.gather(*self._side_effects, return_exceptions=True)

    def _dispatch(self, booking_id: UUID, kind: NotificationKind, recipient: UUID) -> None:
        task = asyncio.create_task(self._deliver(booking_id, kind, recipient))
        self._side_effects.add(task)
        task.add_done_callback(self._side_effects.discard)

    async def _deliver(self, booking_id: UUID, kind: NotificationKind, recipient: UUID) -> None:
        try:
            await self.notifier.dispatch(booking_id, kind, recipient)
        except Exception:
            # The transition is already committed
            logger.exception(f"Failed to dispatch {kind.value} for booking {booking_id}")

    def _notify_after(self, action: BookingAction, booking: BookingSnapshot, actor: ActorContext) -> None:
        kind = ACTION_NOTIFICATIONS[action]
        if action == BookingAction.UPLOAD_PROOF:
            recipient = booking.tenant_owner_id
        elif action == BookingAction.CANCEL and actor.role == ActorRole.GUEST:
            recipient = booking.tenant_owner_id
        else:
            recipient = booking.guest_user_id
        self._dispatch(booking.id, kind, recipient)

    # ==================== INTERNALS ====================

    async def _bounded(self, call: Awaitable[T]) -> T:
        """Await a ledger call, raising TimeoutError past the ledger timeout."""
        return await asyncio.wait_for(call, timeout=self.ledger_timeout)

    async def _load(self, booking_id: UUID) -> BookingSnapshot:
        try:
            return await self._bounded(self.ledger.load(booking_id))
        except TimeoutError as e:
            raise CollaboratorUnavailable(booking_id, collaborator="ledger") from e

    def _authorize(self, booking: BookingSnapshot, actor: ActorContext) -> None:
        if not is_booking_party(actor, booking.guest_user_id, booking.tenant_owner_id):
            raise Unauthorized(booking.id, role=actor.role.value)

    async def _transition(
        self,
        booking_id: UUID,
        actor: ActorContext,
        action: BookingAction,
        proof_update: ProofUpdate | None = None,
        precondition: Callable[[BookingSnapshot], None] | None = None,
    ) -> BookingSnapshot:
        """Run one action through load, authorize, decide and compare-and-swap.

        A lost compare-and-swap or a ledger timeout reloads the booking and
        decides again, so a loser sees the winner's status on its next try.
        """
        record = TransitionRecord(
            action=action.value, actor_id=actor.actor_id, actor_role=actor.role.value
        )
        last_failure = FailureReason.CONFLICT

        for attempt in range(1, self.max_attempts + 1):
            try:
                booking = await self._bounded(self.ledger.load(booking_id))
            except TimeoutError:
                last_failure = FailureReason.UNAVAILABLE
                logger.warning(
                    f"Ledger load timed out for booking {booking_id} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue

            self._authorize(booking, actor)
            next_status = assert_transition(booking.status, actor.role, action, booking.id)
            if precondition is not None:
                precondition(booking)

            try:
                outcome = await self._bounded(
                    self.ledger.compare_and_swap_status(
                        booking.id,
                        booking.status,
                        next_status,
                        proof_update=proof_update,
                        record=record,
                    )
                )
            except TimeoutError:
                last_failure = FailureReason.UNAVAILABLE
                logger.warning(
                    f"Ledger write timed out for booking {booking_id} {action.value} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue

            if outcome == CasOutcome.NOT_FOUND:
                raise BookingNotFound(booking_id)

            if outcome == CasOutcome.CONFLICT:
                last_failure = FailureReason.CONFLICT
                logger.warning(
                    f"Status of booking {booking_id} changed during {action.value} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue

            logger.info(
                f"Booking {booking_id} {action.value} by {actor.role.value} "
                f"{actor.actor_id}: {booking.status.value} -> {next_status.value}"
            )
            committed = await self._committed_snapshot(booking, next_status)
            self._notify_after(action, committed, actor)
            return committed

        raise BookingError.for_reason(
            last_failure, booking_id, action=action.value, attempts=self.max_attempts
        )

    async def _committed_snapshot(
        self, before: BookingSnapshot, next_status: BookingStatus
    ) -> BookingSnapshot:
        """Reload the booking after commit.

        Falls back to the pre-write snapshot with the new status if the
        reload fails, since the transition itself has already committed.
        """
        try:
            return await self._bounded(self.ledger.load(before.id))
        except (TimeoutError, BookingNotFound):
            logger.warning(f"Could not reload booking {before.id} after commit")
            return before.model_copy(
                update={"status": next_status, "version": before.version + 1}
            )
