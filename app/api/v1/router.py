"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import availability, bookings, internal, owner, payouts, webhooks

api_router = APIRouter()

# Availability
api_router.include_router(availability.router, prefix="/availability", tags=["Availability"])

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Owner schedule
api_router.include_router(owner.router, prefix="/owner", tags=["Owner"])

# Payouts
api_router.include_router(payouts.router, prefix="/payouts", tags=["Payouts"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

# Internal
api_router.include_router(internal.router, prefix="/internal", tags=["Internal"])
