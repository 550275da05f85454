"""Availability decision service.

Combines the resource switch, blackouts, the weekly schedule and existing
bookings into a single allow/deny decision for a UTC interval.
"""

import logging
from datetime import datetime
from uuid import UUID

from app.config import Settings, settings as default_settings
from app.core.exceptions import NotFoundError, ValidationError
from app.domain.availability import AvailabilityCode, AvailabilityDecision, schedule_allows
from app.domain.calendar import ensure_utc
from app.models import Resource
from app.repositories.base import BookingRepository

logger = logging.getLogger(__name__)


def validate_interval(start_utc: datetime, end_utc: datetime) -> tuple[datetime, datetime]:
    """Normalize an interval to UTC and reject empty or reversed ranges."""
    start_utc, end_utc = ensure_utc(start_utc), ensure_utc(end_utc)
    if end_utc <= start_utc:
        raise ValidationError("End must be after start")
    return start_utc, end_utc


class AvailabilityService:
    """Service deciding whether an interval can be booked on a resource."""

    def __init__(self, repo: BookingRepository, settings: Settings | None = None):
        self.repo = repo
        self.settings = settings or default_settings

    def timezone_for(self, resource: Resource) -> str:
        return resource.timezone or self.settings.availability_timezone

    async def get_resource(self, resource_id: UUID) -> Resource:
        resource = await self.repo.get_resource(resource_id)
        if resource is None:
            raise NotFoundError("Resource", str(resource_id))
        return resource

    async def check(
        self, resource_id: UUID, start_utc: datetime, end_utc: datetime
    ) -> AvailabilityDecision:
        """Evaluate availability. Denials short-circuit in a fixed order."""
        start_utc, end_utc = validate_interval(start_utc, end_utc)
        resource = await self.get_resource(resource_id)
        return await self.evaluate(resource, start_utc, end_utc)

    async def evaluate(
        self, resource: Resource, start_utc: datetime, end_utc: datetime
    ) -> AvailabilityDecision:
        if not resource.is_active:
            return self._deny(resource, AvailabilityCode.RESOURCE_INACTIVE)

        if await self.repo.has_blackout_overlap(resource.id, start_utc, end_utc):
            return self._deny(resource, AvailabilityCode.BLACKOUT)

        if self.settings.availability_enforcement_enabled:
            slots = await self.repo.list_weekly_slots(resource.id)
            if not schedule_allows(
                start_utc,
                end_utc,
                slots,
                self.timezone_for(resource),
                self.settings.max_calendar_segments,
            ):
                return self._deny(resource, AvailabilityCode.OUTSIDE_AVAILABILITY)

        if await self.repo.has_booking_overlap(resource.id, start_utc, end_utc):
            return self._deny(resource, AvailabilityCode.BOOKING_OVERLAP)

        return AvailabilityDecision.allow()

    def _deny(self, resource: Resource, code: AvailabilityCode) -> AvailabilityDecision:
        logger.info(f"Availability denied for resource {resource.id}: {code.value}")
        return AvailabilityDecision.deny(code)
