"""Owner schedule management schemas."""

from datetime import datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class WeeklySlotIn(BaseModel):
    """One weekly opening window, local wall-clock ``HH:MM``."""

    weekday: int = Field(ge=1, le=7)
    start: str = Field(pattern=r"^\d{2}:\d{2}$")
    end: str = Field(pattern=r"^\d{2}:\d{2}$")
    enabled: bool = True


class WeeklyScheduleUpdate(BaseModel):
    """Full replacement of a resource's weekly schedule."""

    slots: list[WeeklySlotIn] = Field(default_factory=list, max_length=70)


class WeeklySlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    weekday: int
    start_time: time
    end_time: time
    enabled: bool

    @field_serializer("start_time", "end_time")
    def serialize_hhmm(self, value: time) -> str:
        return value.strftime("%H:%M")


class BlackoutCreate(BaseModel):
    start: datetime
    end: datetime
    reason: str | None = Field(None, max_length=140)


class BlackoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    resource_id: UUID
    start_utc: datetime
    end_utc: datetime
    reason: str | None = None


class OwnerBookingResponse(BaseModel):
    """A booking as the space owner sees it."""

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
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
