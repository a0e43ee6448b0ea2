"""Internal endpoints called by the scheduler and other services."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from app.api.deps import BookingServiceDep, SystemActor
from app.api.v1.bookings import booking_response
from app.schemas.booking import BookingResponse

router = APIRouter()


class CompletionSweepRequest(BaseModel):
    """Run a completion sweep as of a given day (defaults to today)."""

    today: date | None = None


class CompletionSweepResponse(BaseModel):
    """Completion sweep result."""

    completed: int
    skipped: int


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    actor: SystemActor,
    service: BookingServiceDep,
) -> BookingResponse:
    """Complete a processing booking whose checkout date has passed."""
    booking = await service.complete_booking(booking_id, actor)
    return booking_response(booking, actor)


@router.post("/bookings/complete-due", response_model=CompletionSweepResponse)
async def complete_due_bookings(
    request: CompletionSweepRequest,
    actor: SystemActor,
    service: BookingServiceDep,
) -> CompletionSweepResponse:
    """Complete every processing booking past checkout."""
    result = await service.complete_due_bookings(request.today)
    return CompletionSweepResponse(**result)
