"""Booking service tests against the in-memory ledger."""

import asyncio
import logging
from datetime import UTC, date, datetime
from uuid import uuid4

import pytest

import app.services.booking_service as booking_module
from app import tasks
from app.core.exceptions import (
    BookingNotFound,
    CollaboratorUnavailable,
    FailureReason,
    InvalidBooking,
    InvalidStatus,
    RoomUnavailable,
    TerminalStatus,
    TransitionConflict,
    Unauthorized,
    WrongRole,
)
from app.core.permissions import ActorContext, ActorRole
from app.domain.booking_state import BookingStatus
from app.gateways.base import NotificationKind
from app.ledger.base import CasOutcome
from app.ledger.memory import InMemoryBookingLedger
from app.schemas.booking import BookingCreate
from app.services.booking_service import BookingService
from conftest import (
    CHECK_IN,
    CHECK_OUT,
    GUEST_ID,
    NIGHTLY_RATE,
    ROOM_ID,
    TENANT_ID,
    jpeg_proof,
)

pytestmark = pytest.mark.anyio

S = BookingStatus


def booking_request(**overrides) -> BookingCreate:
    data = {"room_id": ROOM_ID, "check_in": CHECK_IN, "check_out": CHECK_OUT, "guests": 2}
    data.update(overrides)
    return BookingCreate(**data)


# ==================== CREATION ====================


async def test_create_booking_starts_waiting_for_payment(booking_service, notifier, guest):
    booking = await booking_service.create_booking(guest, booking_request())

    assert booking.status == S.WAITING_PAYMENT
    assert booking.guest_user_id == GUEST_ID
    assert booking.tenant_owner_id == TENANT_ID
    assert booking.nights == 2
    assert booking.total_amount == NIGHTLY_RATE * 2
    assert booking.currency == "IDR"
    assert booking.payment_proof is None

    await booking_service.drain_side_effects()
    assert notifier.sent == [(booking.id, NotificationKind.BOOKING_CREATED, TENANT_ID)]


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"check_out": CHECK_IN}, "check_out"),
        ({"check_in": date(2025, 6, 5)}, "check_out"),
        ({"guests": 0}, "guests"),
        ({"guests": -1}, "guests"),
    ],
)
async def test_create_booking_validates_dates_and_guests(
    booking_service, ledger, guest, overrides, field
):
    with pytest.raises(InvalidBooking) as exc_info:
        await booking_service.create_booking(guest, booking_request(**overrides))

    assert exc_info.value.detail["field"] == field
    assert await ledger.list_bookings() == ([], 0)


async def test_only_guests_create_bookings(booking_service, tenant, system):
    for actor in (tenant, system):
        with pytest.raises(WrongRole):
            await booking_service.create_booking(actor, booking_request())


async def test_create_booking_requires_available_room(booking_service, catalog, guest):
    with pytest.raises(RoomUnavailable):
        await booking_service.create_booking(guest, booking_request(room_id="room-404"))

    catalog.booked_rooms.add(ROOM_ID)
    with pytest.raises(RoomUnavailable) as exc_info:
        await booking_service.create_booking(guest, booking_request())
    assert exc_info.value.detail == {"reason": "ROOM_UNAVAILABLE", "room_id": ROOM_ID}


async def test_create_booking_with_catalog_down_is_unavailable(
    booking_service, catalog_unavailable, guest
):
    with pytest.raises(CollaboratorUnavailable) as exc_info:
        await booking_service.create_booking(guest, booking_request())
    assert exc_info.value.detail["collaborator"] == "catalog"


async def test_owner_cannot_book_own_room(booking_service):
    owner_as_guest = ActorContext(actor_id=TENANT_ID, role=ActorRole.GUEST)
    with pytest.raises(InvalidBooking):
        await booking_service.create_booking(owner_as_guest, booking_request())


# ==================== LIFECYCLE ====================


async def test_booking_scenario_create_upload_approve(booking_service, guest, tenant):
    booking = await booking_service.create_booking(guest, booking_request())
    assert booking.status == S.WAITING_PAYMENT

    booking = await booking_service.upload_payment_proof(booking.id, guest, jpeg_proof())
    assert booking.status == S.WAITING_CONFIRMATION

    booking = await booking_service.approve_booking(booking.id, tenant)
    assert booking.status == S.PROCESSING

    with pytest.raises(InvalidStatus):
        await booking_service.reject_booking(booking.id, tenant)
    assert (await booking_service.get_booking(booking.id, tenant)).status == S.PROCESSING


async def test_upload_then_approve_verifies_proof(booking_service, make_booking, guest, tenant):
    booking = await make_booking()

    uploaded = await booking_service.upload_payment_proof(booking.id, guest, jpeg_proof())
    assert uploaded.payment_proof is not None
    assert uploaded.payment_proof.file_url == jpeg_proof().url
    assert uploaded.payment_proof.verified_at is None

    approved = await booking_service.approve_booking(booking.id, tenant)
    assert approved.status == S.PROCESSING
    assert approved.payment_proof is not None
    assert approved.payment_proof.verified_at is not None


async def test_guest_cancel_only_before_proof_upload(
    booking_service, make_booking, guest, tenant
):
    booking = await make_booking(S.WAITING_CONFIRMATION)

    with pytest.raises(InvalidStatus):
        await booking_service.cancel_booking(booking.id, guest)

    cancelled = await booking_service.cancel_booking(booking.id, tenant)
    assert cancelled.status == S.CANCELLED


async def test_guest_cancel_notifies_tenant(booking_service, make_booking, notifier, guest):
    booking = await make_booking()
    await booking_service.cancel_booking(booking.id, guest)
    await booking_service.drain_side_effects()

    assert notifier.sent[-1] == (booking.id, NotificationKind.BOOKING_CANCELLED, TENANT_ID)


async def test_tenant_cancel_notifies_guest(booking_service, make_booking, notifier, tenant):
    booking = await make_booking()
    await booking_service.cancel_booking(booking.id, tenant)
    await booking_service.drain_side_effects()

    assert notifier.sent[-1] == (booking.id, NotificationKind.BOOKING_CANCELLED, GUEST_ID)


async def test_reject_returns_booking_to_waiting_payment(
    booking_service, make_booking, ledger, notifier, guest, tenant
):
    booking = await make_booking(S.WAITING_CONFIRMATION)

    rejected = await booking_service.reject_booking(booking.id, tenant)
    assert rejected.status == S.WAITING_PAYMENT
    assert rejected.payment_proof is None
    assert len(ledger.rejected_proofs(booking.id)) == 1

    await booking_service.drain_side_effects()
    assert notifier.sent[-1] == (booking.id, NotificationKind.PAYMENT_REJECTED, GUEST_ID)

    # Guest can pay again
    resubmitted = await booking_service.upload_payment_proof(booking.id, guest, jpeg_proof())
    assert resubmitted.status == S.WAITING_CONFIRMATION


async def test_reminder_is_idempotent_on_status(
    booking_service, make_booking, notifier, tenant
):
    booking = await make_booking(S.PROCESSING)

    first = await booking_service.send_reminder(booking.id, tenant)
    second = await booking_service.send_reminder(booking.id, tenant)

    assert first.status == second.status == S.PROCESSING
    assert second.version == booking.version + 2

    await booking_service.drain_side_effects()
    reminders = [s for s in notifier.sent if s[1] == NotificationKind.BOOKING_REMINDER]
    assert reminders == [(booking.id, NotificationKind.BOOKING_REMINDER, GUEST_ID)] * 2


@pytest.mark.parametrize("final_status", [S.CANCELLED, S.COMPLETED])
async def test_terminal_bookings_refuse_every_action(
    booking_service, make_booking, guest, tenant, system, final_status
):
    booking = await make_booking(final_status)
    attempts = [
        booking_service.upload_payment_proof(booking.id, guest, jpeg_proof()),
        booking_service.cancel_booking(booking.id, guest),
        booking_service.cancel_booking(booking.id, tenant),
        booking_service.approve_booking(booking.id, tenant),
        booking_service.reject_booking(booking.id, tenant),
        booking_service.send_reminder(booking.id, tenant),
        booking_service.complete_booking(booking.id, system, today=date(2030, 1, 1)),
    ]
    for attempt in attempts:
        with pytest.raises(TerminalStatus):
            await attempt

    unchanged = await booking_service.get_booking(booking.id, guest)
    assert unchanged == booking


async def test_non_parties_are_unauthorized(
    booking_service, make_booking, other_guest, other_tenant
):
    booking = await make_booking(S.WAITING_CONFIRMATION)

    with pytest.raises(Unauthorized):
        await booking_service.get_booking(booking.id, other_guest)
    with pytest.raises(Unauthorized):
        await booking_service.approve_booking(booking.id, other_tenant)
    with pytest.raises(Unauthorized):
        await booking_service.booking_history(booking.id, other_tenant)


async def test_unknown_booking_is_not_found(booking_service, guest, tenant):
    with pytest.raises(BookingNotFound):
        await booking_service.cancel_booking(uuid4(), guest)
    with pytest.raises(BookingNotFound):
        await booking_service.get_booking(uuid4(), tenant)


async def test_wrong_role_is_reported_before_status(booking_service, make_booking, guest):
    booking = await make_booking(S.WAITING_CONFIRMATION)
    with pytest.raises(WrongRole):
        await booking_service.approve_booking(booking.id, guest)


# ==================== COMPLETION ====================


async def test_complete_requires_checkout_reached(booking_service, make_booking, system):
    booking = await make_booking(S.PROCESSING)

    with pytest.raises(InvalidStatus) as exc_info:
        await booking_service.complete_booking(booking.id, system, today=date(2025, 6, 2))
    assert exc_info.value.detail["check_out"] == "2025-06-03"

    completed = await booking_service.complete_booking(booking.id, system, today=CHECK_OUT)
    assert completed.status == S.COMPLETED


async def test_only_system_completes(booking_service, make_booking, tenant):
    booking = await make_booking(S.PROCESSING)
    with pytest.raises(WrongRole):
        await booking_service.complete_booking(booking.id, tenant, today=date(2030, 1, 1))


async def test_default_clock_uses_platform_timezone(
    booking_service, make_booking, system, monkeypatch
):
    # 20:00 UTC on the 2nd is already the 3rd in Jakarta
    class FixedClock(datetime):
        @classmethod
        def now(cls, tz=None):
            return datetime(2025, 6, 2, 20, 0, tzinfo=UTC).astimezone(tz)

    monkeypatch.setattr(booking_module, "datetime", FixedClock)
    monkeypatch.setattr(booking_module.settings, "timezone", "Asia/Jakarta")
    booking = await make_booking(S.PROCESSING)

    completed = await booking_service.complete_booking(booking.id, system)

    assert completed.status == S.COMPLETED
    assert tasks.local_today is booking_module.local_today


async def test_complete_due_bookings_only_touches_finished_stays(
    booking_service, make_booking, notifier
):
    finished = await make_booking(S.PROCESSING)
    upcoming = await make_booking(
        S.PROCESSING, check_in=date(2025, 7, 1), check_out=date(2025, 7, 4)
    )
    unpaid = await make_booking(S.WAITING_PAYMENT)

    result = await booking_service.complete_due_bookings(today=date(2025, 6, 10))

    assert result == {"completed": 1, "skipped": 0}
    assert (await booking_service.ledger.load(finished.id)).status == S.COMPLETED
    assert (await booking_service.ledger.load(upcoming.id)).status == S.PROCESSING
    assert (await booking_service.ledger.load(unpaid.id)).status == S.WAITING_PAYMENT

    await booking_service.drain_side_effects()
    assert (finished.id, NotificationKind.BOOKING_COMPLETED, GUEST_ID) in notifier.sent


# ==================== QUERIES ====================


async def test_history_records_each_transition(booking_service, make_booking, guest):
    booking = await make_booking(S.PROCESSING)

    events = await booking_service.booking_history(booking.id, guest)

    assert [e.action for e in events] == ["create", "upload_proof", "approve"]
    assert [e.to_status for e in events] == [
        S.WAITING_PAYMENT,
        S.WAITING_CONFIRMATION,
        S.PROCESSING,
    ]
    assert events[2].actor_role == "tenant"


async def test_listing_is_scoped_to_the_caller(
    booking_service, make_booking, guest, other_guest, tenant, other_tenant
):
    await make_booking(S.WAITING_PAYMENT)
    await make_booking(S.PROCESSING)
    await make_booking(S.WAITING_PAYMENT, actor=other_guest)

    mine, total = await booking_service.list_guest_bookings(guest)
    assert total == 2
    assert {b.guest_user_id for b in mine} == {GUEST_ID}

    orders, total = await booking_service.list_tenant_orders(tenant, status=S.WAITING_PAYMENT)
    assert total == 2
    assert all(b.status == S.WAITING_PAYMENT for b in orders)

    page, total = await booking_service.list_tenant_orders(tenant, page=2, page_size=2)
    assert total == 3
    assert len(page) == 1

    assert await booking_service.list_tenant_orders(other_tenant) == ([], 0)

    with pytest.raises(WrongRole):
        await booking_service.list_tenant_orders(guest)
    with pytest.raises(WrongRole):
        await booking_service.list_guest_bookings(tenant)


# ==================== SIDE EFFECTS ====================


async def test_failed_notification_does_not_fail_transition(
    booking_service, make_booking, notifier, tenant, caplog
):
    booking = await make_booking(S.WAITING_CONFIRMATION)
    notifier.error = RuntimeError("broker down")

    with caplog.at_level(logging.ERROR, logger="app.services.booking_service"):
        approved = await booking_service.approve_booking(booking.id, tenant)
        await booking_service.drain_side_effects()

    assert approved.status == S.PROCESSING
    assert (await booking_service.ledger.load(booking.id)).status == S.PROCESSING
    assert any("booking_approved" in r.getMessage() for r in caplog.records)


# ==================== CONCURRENCY ====================


class RendezvousLedger(InMemoryBookingLedger):
    """Holds the first two loads until both callers have read the booking."""

    def __init__(self) -> None:
        super().__init__()
        self.loads = 0
        self.both_loaded = asyncio.Event()

    async def load(self, booking_id):
        snapshot = await super().load(booking_id)
        if self.loads < 2:
            self.loads += 1
            if self.loads == 2:
                self.both_loaded.set()
            await self.both_loaded.wait()
        return snapshot


class AlwaysConflictLedger(InMemoryBookingLedger):
    def __init__(self) -> None:
        super().__init__()
        self.cas_calls = 0

    async def compare_and_swap_status(self, *args, **kwargs):
        self.cas_calls += 1
        return CasOutcome.CONFLICT


class SlowWriteLedger(InMemoryBookingLedger):
    """Ledger whose first ``slow_writes`` writes never finish in time."""

    def __init__(self, slow_writes: int) -> None:
        super().__init__()
        self.slow_writes = slow_writes

    async def compare_and_swap_status(self, *args, **kwargs):
        if self.slow_writes > 0:
            self.slow_writes -= 1
            await asyncio.sleep(5)
        return await super().compare_and_swap_status(*args, **kwargs)


def service_with(ledger, catalog, notifier, **kwargs) -> BookingService:
    return BookingService(ledger=ledger, catalog=catalog, notifier=notifier, **kwargs)


async def test_concurrent_cancels_have_one_winner(catalog, notifier, guest):
    ledger = RendezvousLedger()
    service = service_with(ledger, catalog, notifier, max_attempts=3, ledger_timeout=1.0)
    booking = await service.create_booking(guest, booking_request())

    results = await asyncio.gather(
        service.cancel_booking(booking.id, guest),
        service.cancel_booking(booking.id, guest),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert winners[0].status == S.CANCELLED
    assert len(losers) == 1
    assert isinstance(losers[0], TerminalStatus)

    history = await ledger.history(booking.id)
    assert [e.action for e in history].count("cancel") == 1
    await service.drain_side_effects()


async def test_conflict_after_exhausting_retries(catalog, notifier, guest):
    ledger = AlwaysConflictLedger()
    service = service_with(ledger, catalog, notifier, max_attempts=3, ledger_timeout=1.0)
    booking = await service.create_booking(guest, booking_request())

    with pytest.raises(TransitionConflict) as exc_info:
        await service.cancel_booking(booking.id, guest)

    assert ledger.cas_calls == 3
    assert exc_info.value.reason == FailureReason.CONFLICT
    assert exc_info.value.detail["attempts"] == 3
    await service.drain_side_effects()


async def test_ledger_timeouts_surface_as_unavailable(catalog, notifier, guest):
    ledger = SlowWriteLedger(slow_writes=3)
    service = service_with(ledger, catalog, notifier, max_attempts=3, ledger_timeout=0.05)
    booking = await service.create_booking(guest, booking_request())

    with pytest.raises(CollaboratorUnavailable):
        await service.cancel_booking(booking.id, guest)

    assert (await ledger.load(booking.id)).status == S.WAITING_PAYMENT
    await service.drain_side_effects()


async def test_ledger_timeout_is_retried_like_a_conflict(catalog, notifier, guest):
    ledger = SlowWriteLedger(slow_writes=1)
    service = service_with(ledger, catalog, notifier, max_attempts=3, ledger_timeout=0.05)
    booking = await service.create_booking(guest, booking_request())

    cancelled = await service.cancel_booking(booking.id, guest)

    assert cancelled.status == S.CANCELLED
    await service.drain_side_effects()
