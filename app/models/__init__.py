"""Database models."""

from app.models.booking import Booking, BookingStatusEvent, PaymentProof

__all__ = [
    "Booking",
    "PaymentProof",
    "BookingStatusEvent",
]
