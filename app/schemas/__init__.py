"""Pydantic schemas for API validation."""

from app.schemas.booking import (
    BookingCreate,
    BookingHistoryResponse,
    BookingListResponse,
    BookingResponse,
    BookingSnapshot,
    PaymentProofSnapshot,
    StatusEventSnapshot,
    TenantConfirmRequest,
)

__all__ = [
    "BookingCreate",
    "BookingHistoryResponse",
    "BookingListResponse",
    "BookingResponse",
    "BookingSnapshot",
    "PaymentProofSnapshot",
    "StatusEventSnapshot",
    "TenantConfirmRequest",
]
