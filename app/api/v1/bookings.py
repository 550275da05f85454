"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.deps import CurrentUserDep, get_booking_service
from app.core.middleware import booking_limiter
from app.domain.cancellation_policy import CancellationActor
from app.schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
)
from app.schemas.payment import CheckoutResponse
from app.services.booking_service import BookingService

router = APIRouter()

BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]


@router.post(
    "",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_limiter)],
)
async def create_booking(
    request: BookingCreate,
    current_user: CurrentUserDep,
    service: BookingServiceDep,
) -> BookingCreatedResponse:
    """Create a pending booking for the authenticated renter."""
    booking = await service.create(
        resource_id=request.resource_id,
        renter_id=current_user.id,
        start_utc=request.start,
        end_utc=request.end,
        total_amount=request.total_amount,
        currency=request.currency,
    )
    return BookingCreatedResponse(booking_id=booking.id, status=booking.status)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUserDep,
    service: BookingServiceDep,
) -> BookingResponse:
    """Get booking status (renter or owner)."""
    booking = await service.get_booking(booking_id, current_user.id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/payment", response_model=CheckoutResponse)
async def initiate_payment(
    booking_id: UUID,
    current_user: CurrentUserDep,
    service: BookingServiceDep,
) -> CheckoutResponse:
    """Open a checkout session for a pending booking."""
    result = await service.initiate_payment(booking_id, current_user.id)
    return CheckoutResponse(checkout_url=result.checkout_url, session_id=result.session_id)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: CurrentUserDep,
    service: BookingServiceDep,
    request: BookingCancelRequest | None = None,
) -> BookingCancelResponse:
    """Cancel a booking as its renter or as the resource owner."""
    actor = CancellationActor((request or BookingCancelRequest()).actor)
    result = await service.cancel(booking_id, actor, current_user.id)
    return BookingCancelResponse(
        refunded=result.refunded,
        already_cancelled=result.already_cancelled,
        refund_status=result.refund_status,
    )
