"""Availability endpoints."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_availability_service
from app.core.middleware import availability_limiter
from app.schemas.availability import AvailabilityResponse
from app.services.availability_service import AvailabilityService

router = APIRouter()


@router.get(
    "",
    response_model=AvailabilityResponse,
    dependencies=[Depends(availability_limiter)],
)
async def check_availability(
    service: Annotated[AvailabilityService, Depends(get_availability_service)],
    resource_id: UUID = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
) -> AvailabilityResponse:
    """Check whether an interval can be booked. Denials are returned with a reason code."""
    decision = await service.check(resource_id, start, end)
    return AvailabilityResponse(
        available=decision.available,
        reason_code=decision.reason_code,
        message=decision.message,
    )
