"""Shared test configuration and fixtures.

Key principles:
- Settings come from the environment, set here before the app is imported.
- Services run against the in-memory ledger with fake catalog, storage and
  notification collaborators; no network or broker is touched.
- httpx.AsyncClient over ASGITransport is used for all HTTP tests.
- AnyIO is the single async runner via pytest-anyio (@pytest.mark.anyio).
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from io import BytesIO
from typing import BinaryIO

import httpx
import pytest
from httpx import ASGITransport
from PIL import Image

from app.core.permissions import ActorContext, ActorRole
from app.core.security import create_actor_token
from app.domain.booking_state import BookingStatus
from app.gateways.base import (
    CatalogError,
    CatalogGateway,
    NotificationKind,
    NotificationSink,
    RoomQuote,
    StoredObject,
)
from app.ledger.memory import InMemoryBookingLedger
from app.schemas.booking import BookingCreate, BookingSnapshot
from app.services.booking_service import BookingService
from app.services.payment_proof_service import PaymentProofService
from app.services.storage_service import detect_content_type

GUEST_ID = uuid.UUID("11111111-1111-4111-8111-111111111111")
OTHER_GUEST_ID = uuid.UUID("22222222-2222-4222-8222-222222222222")
TENANT_ID = uuid.UUID("33333333-3333-4333-8333-333333333333")
OTHER_TENANT_ID = uuid.UUID("44444444-4444-4444-8444-444444444444")

ROOM_ID = "room-101"
NIGHTLY_RATE = 350_000

CHECK_IN = date(2025, 6, 1)
CHECK_OUT = date(2025, 6, 3)


class FakeCatalog(CatalogGateway):
    """Catalog with one room owned by TENANT_ID."""

    def __init__(self) -> None:
        self.rooms = {
            ROOM_ID: RoomQuote(
                room_id=ROOM_ID,
                property_id="property-7",
                tenant_owner_id=TENANT_ID,
                base_price=NIGHTLY_RATE,
                currency="IDR",
            )
        }
        self.booked_rooms: set[str] = set()
        self.error: Exception | None = None

    async def get_room_quote(self, room_id: str) -> RoomQuote | None:
        if self.error:
            raise self.error
        return self.rooms.get(room_id)

    async def is_room_available(self, room_id: str, check_in: date, check_out: date) -> bool:
        if self.error:
            raise self.error
        return room_id not in self.booked_rooms


class RecordingNotifier(NotificationSink):
    """Records dispatched notifications; raises ``error`` when set."""

    def __init__(self) -> None:
        self.sent: list[tuple[uuid.UUID, NotificationKind, uuid.UUID]] = []
        self.error: Exception | None = None

    async def dispatch(self, booking_id: uuid.UUID, kind: NotificationKind, recipient: uuid.UUID) -> None:
        if self.error:
            raise self.error
        self.sent.append((booking_id, kind, recipient))

    def kinds(self) -> list[NotificationKind]:
        return [kind for _, kind, _ in self.sent]


class FakeStorage:
    """Blob store keeping uploads in a dict; sniffs content type like S3 storage."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []

    async def upload_payment_proof(
        self, file: BinaryIO, booking_id: uuid.UUID, filename: str
    ) -> StoredObject:
        data = file.read()
        url = f"https://storage.test/bookings/{booking_id}/{uuid.uuid4().hex[:12]}-{filename}"
        self.objects[url] = data
        return StoredObject(url=url, size_bytes=len(data), content_type=detect_content_type(data))

    async def delete_file(self, file_url: str) -> bool:
        self.deleted.append(file_url)
        return self.objects.pop(file_url, None) is not None


def image_bytes(fmt: str = "JPEG", size: tuple[int, int] = (16, 16)) -> bytes:
    """Encode a small solid image."""
    buffer = BytesIO()
    Image.new("RGB", size, (200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


def jpeg_proof() -> StoredObject:
    return StoredObject(
        url="https://storage.test/bookings/proof.jpg",
        size_bytes=48_000,
        content_type="image/jpeg",
    )


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""
    return "asyncio"


# ==================== ACTORS ====================


@pytest.fixture
def guest() -> ActorContext:
    return ActorContext(actor_id=GUEST_ID, role=ActorRole.GUEST)


@pytest.fixture
def other_guest() -> ActorContext:
    return ActorContext(actor_id=OTHER_GUEST_ID, role=ActorRole.GUEST)


@pytest.fixture
def tenant() -> ActorContext:
    return ActorContext(actor_id=TENANT_ID, role=ActorRole.TENANT)


@pytest.fixture
def other_tenant() -> ActorContext:
    return ActorContext(actor_id=OTHER_TENANT_ID, role=ActorRole.TENANT)


@pytest.fixture
def system() -> ActorContext:
    return ActorContext.system()


# ==================== COLLABORATORS ====================


@pytest.fixture
def ledger() -> InMemoryBookingLedger:
    return InMemoryBookingLedger()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def booking_service(
    ledger: InMemoryBookingLedger, catalog: FakeCatalog, notifier: RecordingNotifier
) -> BookingService:
    return BookingService(
        ledger=ledger,
        catalog=catalog,
        notifier=notifier,
        max_attempts=3,
        ledger_timeout=1.0,
    )


@pytest.fixture
def proof_service(booking_service: BookingService, storage: FakeStorage) -> PaymentProofService:
    return PaymentProofService(booking_service, storage)


@pytest.fixture
def make_booking(
    booking_service: BookingService,
    guest: ActorContext,
    tenant: ActorContext,
    system: ActorContext,
) -> Callable[..., Awaitable[BookingSnapshot]]:
    """Create a booking and drive it to the requested status."""

    async def _make(
        status: BookingStatus = BookingStatus.WAITING_PAYMENT,
        check_in: date = CHECK_IN,
        check_out: date = CHECK_OUT,
        actor: ActorContext | None = None,
    ) -> BookingSnapshot:
        booking = await booking_service.create_booking(
            actor or guest,
            BookingCreate(room_id=ROOM_ID, check_in=check_in, check_out=check_out, guests=2),
        )
        if status == BookingStatus.CANCELLED:
            return await booking_service.cancel_booking(booking.id, guest)
        if status == BookingStatus.WAITING_PAYMENT:
            return booking

        booking = await booking_service.upload_payment_proof(booking.id, guest, jpeg_proof())
        if status == BookingStatus.WAITING_CONFIRMATION:
            return booking

        booking = await booking_service.approve_booking(booking.id, tenant)
        if status == BookingStatus.PROCESSING:
            return booking

        return await booking_service.complete_booking(booking.id, system, today=check_out)

    return _make


# ==================== HTTP ====================


@pytest.fixture
def auth_headers() -> Callable[[ActorContext], dict[str, str]]:
    def _headers(actor: ActorContext) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_actor_token(actor.actor_id, actor.role)}"}

    return _headers


@pytest.fixture
async def client(
    booking_service: BookingService,
    proof_service: PaymentProofService,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client for the app wired to the in-memory services."""
    from app.main import app
    from app.services.factory import get_booking_service, get_payment_proof_service

    app.dependency_overrides[get_booking_service] = lambda: booking_service
    app.dependency_overrides[get_payment_proof_service] = lambda: proof_service

    transport = ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        await booking_service.drain_side_effects()


@pytest.fixture
def catalog_unavailable(catalog: FakeCatalog) -> FakeCatalog:
    catalog.error = CatalogError("connection refused")
    return catalog
