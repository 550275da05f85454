"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    resource_id: UUID
    start: datetime
    end: datetime
    total_amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    currency: str | None = Field(None, min_length=3, max_length=3)

    @field_validator("end")
    @classmethod
    def validate_end(cls, v: datetime, info) -> datetime:
        start = info.data.get("start")
        if start and v <= start:
            raise ValueError("end must be after start")
        return v


class BookingCreatedResponse(BaseModel):
    """Schema returned after a booking is created."""

    booking_id: UUID
    status: str


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    resource_id: UUID
    renter_id: UUID
    start_utc: datetime
    end_utc: datetime

    status: str
    payment_status: str
    refund_status: str

    total_amount: Decimal
    currency: str
    platform_fee_minor: int | None = None
    owner_payout_minor: int | None = None

    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    confirmed_at: datetime | None = None
    created_at: datetime | None = None


class BookingCancelRequest(BaseModel):
    """Schema for cancelling a booking."""

    actor: str = Field(default="renter", pattern="^(renter|owner)$")


class BookingCancelResponse(BaseModel):
    """Schema for cancellation outcome."""

    refunded: bool
    already_cancelled: bool
    refund_status: str


class ExpireResponse(BaseModel):
    """Schema for the expiration sweep result."""

    expired: int
    booking_ids: list[UUID]
