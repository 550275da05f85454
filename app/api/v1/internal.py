"""Internal endpoints called by schedulers."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import get_booking_service, require_cleanup_secret
from app.schemas.booking import ExpireResponse
from app.services.booking_service import BookingService

router = APIRouter(dependencies=[Depends(require_cleanup_secret)])


@router.post("/bookings/expire", response_model=ExpireResponse)
async def expire_bookings(
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> ExpireResponse:
    """Expire unpaid bookings past the payment timeout."""
    expired = await service.expire_stale()
    return ExpireResponse(expired=len(expired), booking_ids=expired)


@router.post("/refunds/retry")
async def retry_refunds(
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> dict:
    """Re-attempt refunds that are still owed."""
    refunded = await service.retry_refunds()
    return {"refunded": refunded}
