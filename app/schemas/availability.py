"""Availability-related Pydantic schemas."""

from pydantic import BaseModel

from app.domain.availability import AvailabilityCode


class AvailabilityResponse(BaseModel):
    """Schema for an availability decision. Denials are ordinary responses."""

    available: bool
    reason_code: AvailabilityCode | None = None
    message: str | None = None
