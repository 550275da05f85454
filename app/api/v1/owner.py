"""Owner endpoints for weekly availability, blackouts and bookings."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import CurrentUserDep, get_owner_schedule_service
from app.schemas.owner import (
    BlackoutCreate,
    BlackoutResponse,
    OwnerBookingResponse,
    WeeklyScheduleUpdate,
    WeeklySlotResponse,
)
from app.services.owner_schedule_service import OwnerScheduleService

router = APIRouter()

ScheduleServiceDep = Annotated[OwnerScheduleService, Depends(get_owner_schedule_service)]


@router.get("/resources/{resource_id}/availability", response_model=list[WeeklySlotResponse])
async def get_weekly_schedule(
    resource_id: UUID,
    current_user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> list[WeeklySlotResponse]:
    slots = await service.list_slots(resource_id, current_user.id)
    return [WeeklySlotResponse.model_validate(slot) for slot in slots]


@router.put("/resources/{resource_id}/availability", response_model=list[WeeklySlotResponse])
async def replace_weekly_schedule(
    resource_id: UUID,
    request: WeeklyScheduleUpdate,
    current_user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> list[WeeklySlotResponse]:
    """Replace the weekly schedule. Sending no slots reopens the space around the clock."""
    slots = await service.replace_slots(
        resource_id,
        current_user.id,
        [(s.weekday, s.start, s.end, s.enabled) for s in request.slots],
    )
    return [WeeklySlotResponse.model_validate(slot) for slot in slots]


@router.get("/resources/{resource_id}/blackouts", response_model=list[BlackoutResponse])
async def list_blackouts(
    resource_id: UUID,
    current_user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> list[BlackoutResponse]:
    blackouts = await service.list_blackouts(resource_id, current_user.id)
    return [BlackoutResponse.model_validate(b) for b in blackouts]


@router.post(
    "/resources/{resource_id}/blackouts",
    response_model=BlackoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_blackout(
    resource_id: UUID,
    request: BlackoutCreate,
    current_user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> BlackoutResponse:
    blackout = await service.add_blackout(
        resource_id, current_user.id, request.start, request.end, request.reason
    )
    return BlackoutResponse.model_validate(blackout)


@router.delete("/blackouts/{blackout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blackout(
    blackout_id: UUID,
    current_user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> None:
    await service.delete_blackout(blackout_id, current_user.id)


@router.get("/resources/{resource_id}/bookings", response_model=list[OwnerBookingResponse])
async def list_resource_bookings(
    resource_id: UUID,
    current_user: CurrentUserDep,
    service: ScheduleServiceDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    start: Annotated[datetime | None, Query(alias="from")] = None,
    end: Annotated[datetime | None, Query(alias="to")] = None,
) -> list[OwnerBookingResponse]:
    """Bookings on the caller's space, ordered by start time."""
    bookings = await service.list_bookings(
        resource_id, current_user.id, status_filter, start, end
    )
    return [OwnerBookingResponse.model_validate(b) for b in bookings]
