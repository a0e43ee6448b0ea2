"""Wiring of the booking services to their production collaborators."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import async_session_factory
from app.gateways.catalog import HttpCatalogGateway
from app.gateways.celery_notifications import CeleryNotificationSink
from app.ledger.base import BookingLedger
from app.ledger.memory import InMemoryBookingLedger
from app.ledger.sql import SqlBookingLedger
from app.services.booking_service import BookingService
from app.services.payment_proof_service import PaymentProofService
from app.services.storage_service import storage_service


def build_ledger(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> BookingLedger:
    """Build the ledger selected by ``settings.ledger_backend``."""
    if settings.ledger_backend == "memory":
        return InMemoryBookingLedger()
    return SqlBookingLedger(session_factory)


def build_booking_service(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> BookingService:
    """Build a booking service with the configured ledger."""
    return BookingService(
        ledger=build_ledger(session_factory),
        catalog=HttpCatalogGateway(),
        notifier=CeleryNotificationSink(),
    )


@lru_cache
def get_booking_service() -> BookingService:
    """Get the process-wide booking service used by the API."""
    return build_booking_service()


@lru_cache
def get_payment_proof_service() -> PaymentProofService:
    """Get the process-wide payment proof service used by the API."""
    return PaymentProofService(get_booking_service(), storage_service)
