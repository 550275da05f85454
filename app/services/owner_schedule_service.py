"""Owner-side management of weekly availability, blackouts and bookings."""

import logging
import re
from datetime import datetime, time
from uuid import UUID

from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.domain.booking_state import BOOKING_TRANSITIONS
from app.domain.calendar import ensure_utc
from app.models import BlackoutInterval, Booking, Resource, WeeklyAvailabilitySlot
from app.repositories.base import BookingRepository
from app.services.availability_service import validate_interval

logger = logging.getLogger(__name__)

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
MAX_BLACKOUT_REASON_LENGTH = 140


def parse_hhmm(value: str) -> time:
    """Parse a strict ``HH:MM`` wall-clock time."""
    match = HHMM_RE.match(value or "")
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def validate_slot(weekday: int, start: str, end: str, enabled: bool) -> tuple[int, time, time, bool]:
    if not 1 <= weekday <= 7:
        raise ValidationError(f"Invalid weekday {weekday}, expected 1 (Monday) to 7 (Sunday)")
    start_time = parse_hhmm(start)
    end_time = parse_hhmm(end)
    if enabled and end_time <= start_time:
        raise ValidationError(f"Slot end must be after start on weekday {weekday}")
    return weekday, start_time, end_time, enabled


class OwnerScheduleService:
    """Service for owners editing when their space can be booked."""

    def __init__(self, repo: BookingRepository):
        self.repo = repo

    async def _owned_resource(self, resource_id: UUID, owner_id: UUID) -> Resource:
        resource = await self.repo.get_resource(resource_id)
        if resource is None:
            raise NotFoundError("Resource", str(resource_id))
        if resource.owner_id != owner_id:
            raise AuthorizationError("Only the owner can manage this parking space")
        return resource

    async def list_slots(self, resource_id: UUID, owner_id: UUID) -> list[WeeklyAvailabilitySlot]:
        await self._owned_resource(resource_id, owner_id)
        return await self.repo.list_weekly_slots(resource_id)

    async def replace_slots(
        self,
        resource_id: UUID,
        owner_id: UUID,
        slots: list[tuple[int, str, str, bool]],
    ) -> list[WeeklyAvailabilitySlot]:
        """Replace the whole weekly schedule. An empty list reopens the space."""
        validated = [validate_slot(*slot) for slot in slots]
        await self._owned_resource(resource_id, owner_id)
        rows = await self.repo.replace_weekly_slots(resource_id, validated)
        await self.repo.commit()
        logger.info(f"Weekly schedule of resource {resource_id} replaced ({len(rows)} slots)")
        return rows

    async def list_blackouts(self, resource_id: UUID, owner_id: UUID) -> list[BlackoutInterval]:
        await self._owned_resource(resource_id, owner_id)
        return await self.repo.list_blackouts(resource_id)

    async def add_blackout(
        self,
        resource_id: UUID,
        owner_id: UUID,
        start_utc: datetime,
        end_utc: datetime,
        reason: str | None = None,
    ) -> BlackoutInterval:
        start_utc, end_utc = validate_interval(start_utc, end_utc)
        if reason is not None:
            reason = reason.strip()[:MAX_BLACKOUT_REASON_LENGTH] or None

        await self._owned_resource(resource_id, owner_id)
        blackout = await self.repo.add_blackout(resource_id, start_utc, end_utc, reason)
        await self.repo.commit()
        logger.info(f"Blackout {blackout.id} added to resource {resource_id}")
        return blackout

    async def delete_blackout(self, blackout_id: UUID, owner_id: UUID) -> None:
        blackout = await self.repo.get_blackout(blackout_id)
        if blackout is None:
            raise NotFoundError("Blackout", str(blackout_id))
        await self._owned_resource(blackout.resource_id, owner_id)
        await self.repo.delete_blackout(blackout_id)
        await self.repo.commit()
        logger.info(f"Blackout {blackout_id} removed from resource {blackout.resource_id}")

    async def list_bookings(
        self,
        resource_id: UUID,
        owner_id: UUID,
        status: str | None = None,
        starts_from: datetime | None = None,
        ends_until: datetime | None = None,
    ) -> list[Booking]:
        """Bookings on an owned space, optionally narrowed by status and period."""
        if status is not None and status not in BOOKING_TRANSITIONS:
            raise ValidationError(f"Unknown booking status '{status}'")
        if starts_from is not None:
            starts_from = ensure_utc(starts_from)
        if ends_until is not None:
            ends_until = ensure_utc(ends_until)

        await self._owned_resource(resource_id, owner_id)
        return await self.repo.list_resource_bookings(resource_id, status, starts_from, ends_until)
