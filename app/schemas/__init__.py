"""Pydantic schemas for API validation."""

from app.schemas.availability import AvailabilityResponse
from app.schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    ExpireResponse,
)
from app.schemas.owner import (
    BlackoutCreate,
    BlackoutResponse,
    OwnerBookingResponse,
    WeeklyScheduleUpdate,
    WeeklySlotIn,
    WeeklySlotResponse,
)
from app.schemas.payment import (
    CheckoutResponse,
    OnboardingLinkResponse,
    PayoutAccountCreate,
    PayoutAccountResponse,
    WebhookAck,
)

__all__ = [
    # Availability
    "AvailabilityResponse",
    # Booking
    "BookingCreate",
    "BookingCreatedResponse",
    "BookingResponse",
    "BookingCancelRequest",
    "BookingCancelResponse",
    "ExpireResponse",
    # Owner
    "WeeklySlotIn",
    "WeeklyScheduleUpdate",
    "WeeklySlotResponse",
    "BlackoutCreate",
    "BlackoutResponse",
    "OwnerBookingResponse",
    # Payment
    "CheckoutResponse",
    "PayoutAccountCreate",
    "PayoutAccountResponse",
    "OnboardingLinkResponse",
    "WebhookAck",
]
