"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import bookings, internal, tenant

api_router = APIRouter()

# Bookings (guest side)
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Tenant orders
api_router.include_router(tenant.router, prefix="/tenant", tags=["Tenant"])

# Internal
api_router.include_router(internal.router, prefix="/internal", tags=["Internal"])
