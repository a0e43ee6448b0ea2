"""Guest booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from app.api.deps import BookingServiceDep, CurrentActor, GuestActor, PaymentProofServiceDep
from app.core.middleware import booking_limiter, payment_proof_limiter
from app.core.permissions import ActorContext
from app.domain.booking_state import BookingStatus, allowed_actions
from app.schemas.booking import (
    BookingCreate,
    BookingHistoryResponse,
    BookingListResponse,
    BookingResponse,
    BookingSnapshot,
)

router = APIRouter()


def booking_response(booking: BookingSnapshot, actor: ActorContext) -> BookingResponse:
    """Booking with the actions the caller may take next."""
    return BookingResponse.from_snapshot(booking, allowed_actions(booking.status, actor.role))


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_limiter)],
)
async def create_booking(
    booking_data: BookingCreate,
    actor: GuestActor,
    service: BookingServiceDep,
) -> BookingResponse:
    """Create a new booking awaiting payment."""
    booking = await service.create_booking(actor, booking_data)
    return booking_response(booking, actor)


@router.get("", response_model=BookingListResponse)
async def list_my_bookings(
    actor: GuestActor,
    service: BookingServiceDep,
    status_filter: Annotated[BookingStatus | None, Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> BookingListResponse:
    """List the guest's bookings, newest first."""
    bookings, total = await service.list_guest_bookings(
        actor, status=status_filter, page=page, page_size=page_size
    )
    return BookingListResponse.from_page(bookings, total, page, page_size, actor.role)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    actor: CurrentActor,
    service: BookingServiceDep,
) -> BookingResponse:
    """Get booking details (guest or tenant of the booking)."""
    booking = await service.get_booking(booking_id, actor)
    return booking_response(booking, actor)


@router.get("/{booking_id}/history", response_model=BookingHistoryResponse)
async def get_booking_history(
    booking_id: UUID,
    actor: CurrentActor,
    service: BookingServiceDep,
) -> BookingHistoryResponse:
    """Get the status history of a booking."""
    events = await service.booking_history(booking_id, actor)
    return BookingHistoryResponse(booking_id=booking_id, events=events)


@router.post(
    "/{booking_id}/payment-proof",
    response_model=BookingResponse,
    dependencies=[Depends(payment_proof_limiter)],
)
async def upload_payment_proof(
    booking_id: UUID,
    actor: GuestActor,
    proof_service: PaymentProofServiceDep,
    file: UploadFile = File(...),
) -> BookingResponse:
    """Upload a transfer receipt (JPG/PNG, max 1MB)."""
    # One byte past the ceiling is enough to reject oversized files
    data = await file.read(proof_service.max_bytes + 1)
    booking = await proof_service.upload(booking_id, actor, data, file.filename)
    return booking_response(booking, actor)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    actor: GuestActor,
    service: BookingServiceDep,
) -> BookingResponse:
    """Cancel a booking that has no payment proof yet."""
    booking = await service.cancel_booking(booking_id, actor)
    return booking_response(booking, actor)
