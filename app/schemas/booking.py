"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.core.permissions import ActorRole
from app.domain.booking_state import BookingAction, BookingStatus, allowed_actions


class PaymentProofSnapshot(BaseModel):
    """Active payment proof attached to a booking."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    file_url: str
    content_type: str
    size_bytes: int
    submitted_at: datetime
    verified_at: datetime | None = None


class BookingSnapshot(BaseModel):
    """Immutable view of a booking as stored in the ledger."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    room_id: str
    property_id: str
    guest_user_id: UUID
    tenant_owner_id: UUID

    status: BookingStatus
    check_in: date
    check_out: date
    guests: int

    total_amount: int
    currency: str

    payment_proof: PaymentProofSnapshot | None = None
    version: int = 1

    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def nights(self) -> int:
        """Calculate number of nights."""
        return (self.check_out - self.check_in).days


class StatusEventSnapshot(BaseModel):
    """One committed transition in a booking's history."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    booking_id: UUID
    action: str
    from_status: BookingStatus | None
    to_status: BookingStatus
    actor_id: UUID | None
    actor_role: str
    created_at: datetime


class BookingCreate(BaseModel):
    """Schema for creating a booking.

    Date range and guest count are checked by the booking service so the
    same rules apply to every caller.
    """

    room_id: str = Field(..., min_length=1, max_length=64)
    check_in: date
    check_out: date
    guests: int


class BookingResponse(BookingSnapshot):
    """Booking as returned by the API, with the caller's legal next actions."""

    allowed_actions: list[BookingAction] = []

    @classmethod
    def from_snapshot(
        cls, snapshot: BookingSnapshot, allowed_actions: list[BookingAction]
    ) -> "BookingResponse":
        return cls(
            **snapshot.model_dump(exclude={"nights"}),
            allowed_actions=allowed_actions,
        )


class BookingListResponse(BaseModel):
    """Schema for paginated booking list."""

    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def from_page(
        cls,
        bookings: list[BookingSnapshot],
        total: int,
        page: int,
        page_size: int,
        role: ActorRole,
    ) -> "BookingListResponse":
        return cls(
            bookings=[
                BookingResponse.from_snapshot(b, allowed_actions(b.status, role))
                for b in bookings
            ],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=(total + page_size - 1) // page_size,
        )


class TenantConfirmRequest(BaseModel):
    """Schema for a tenant approving or rejecting a payment proof."""

    action: Literal["approve", "reject"]


class BookingHistoryResponse(BaseModel):
    """Schema for a booking's transition history."""

    booking_id: UUID
    events: list[StatusEventSnapshot]
