"""Immutability enforcement for booking records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify immutable booking records."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _forbid(model, model_name: str, operation: str) -> None:
    mapper_event = "before_update" if operation == "UPDATE" else "before_delete"

    @event.listens_for(model, mapper_event)
    def prevent(mapper, connection, target):
        _log_immutability_violation(model_name, operation, str(target.id))
        raise ImmutabilityViolationError(model_name, operation, str(target.id))


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for immutability enforcement.

    Bookings and payment proofs are never physically deleted; status events
    are append-only. Safe to call more than once.
    """
    global _registered
    if _registered:
        return

    from app.models.booking import Booking, BookingStatusEvent, PaymentProof

    # ============ Booking: No DELETE (terminal states are kept for history) ============
    _forbid(Booking, "Booking", "DELETE")

    # ============ PaymentProof: No DELETE (rejected proofs are kept) ============
    _forbid(PaymentProof, "PaymentProof", "DELETE")

    # ============ BookingStatusEvent: Append-Only ============
    _forbid(BookingStatusEvent, "BookingStatusEvent", "UPDATE")
    _forbid(BookingStatusEvent, "BookingStatusEvent", "DELETE")

    _registered = True
    logger.info("Immutability enforcement registered for booking records")
