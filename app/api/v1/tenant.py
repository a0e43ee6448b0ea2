"""Tenant order management endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from app.api.deps import BookingServiceDep, TenantActor
from app.api.v1.bookings import booking_response
from app.domain.booking_state import BookingStatus
from app.schemas.booking import BookingListResponse, BookingResponse, TenantConfirmRequest

router = APIRouter()


@router.get("/orders", response_model=BookingListResponse)
async def list_orders(
    actor: TenantActor,
    service: BookingServiceDep,
    status_filter: Annotated[BookingStatus | None, Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> BookingListResponse:
    """List bookings on the tenant's properties."""
    bookings, total = await service.list_tenant_orders(
        actor, status=status_filter, page=page, page_size=page_size
    )
    return BookingListResponse.from_page(bookings, total, page, page_size, actor.role)


@router.post("/orders/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_payment(
    booking_id: UUID,
    request: TenantConfirmRequest,
    actor: TenantActor,
    service: BookingServiceDep,
) -> BookingResponse:
    """Approve or reject the guest's payment proof."""
    if request.action == "approve":
        booking = await service.approve_booking(booking_id, actor)
    else:
        booking = await service.reject_booking(booking_id, actor)
    return booking_response(booking, actor)


@router.post("/orders/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_order(
    booking_id: UUID,
    actor: TenantActor,
    service: BookingServiceDep,
) -> BookingResponse:
    """Cancel an order before it is being processed."""
    booking = await service.cancel_booking(booking_id, actor)
    return booking_response(booking, actor)


@router.post("/orders/{booking_id}/reminder", response_model=BookingResponse)
async def send_reminder(
    booking_id: UUID,
    actor: TenantActor,
    service: BookingServiceDep,
) -> BookingResponse:
    """Send the guest a reminder about their upcoming stay."""
    booking = await service.send_reminder(booking_id, actor)
    return booking_response(booking, actor)
