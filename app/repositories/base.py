"""Storage interface used by the availability and booking services."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import datetime, time
from typing import Any
from uuid import UUID

from app.models import BlackoutInterval, Booking, PayoutAccount, Resource, WeeklyAvailabilitySlot


class BookingRepository(ABC):
    """Abstract store for resources, schedules, blackouts, bookings and payout accounts.

    Single-object lookups return the object or ``None``; collection lookups
    return lists. Implementations must make ``insert_booking_if_free`` atomic
    with respect to concurrent inserts on the same resource.
    """

    # Resources

    @abstractmethod
    async def get_resource(self, resource_id: UUID) -> Resource | None:
        pass

    # Weekly schedule

    @abstractmethod
    async def list_weekly_slots(self, resource_id: UUID) -> list[WeeklyAvailabilitySlot]:
        pass

    @abstractmethod
    async def replace_weekly_slots(
        self,
        resource_id: UUID,
        slots: Iterable[tuple[int, time, time, bool]],
    ) -> list[WeeklyAvailabilitySlot]:
        """Replace all slot rows of a resource with ``(weekday, start, end, enabled)`` rows."""
        pass

    # Blackouts

    @abstractmethod
    async def has_blackout_overlap(
        self, resource_id: UUID, start_utc: datetime, end_utc: datetime
    ) -> bool:
        pass

    @abstractmethod
    async def list_blackouts(self, resource_id: UUID) -> list[BlackoutInterval]:
        pass

    @abstractmethod
    async def add_blackout(
        self, resource_id: UUID, start_utc: datetime, end_utc: datetime, reason: str | None
    ) -> BlackoutInterval:
        pass

    @abstractmethod
    async def get_blackout(self, blackout_id: UUID) -> BlackoutInterval | None:
        pass

    @abstractmethod
    async def delete_blackout(self, blackout_id: UUID) -> None:
        pass

    # Bookings

    @abstractmethod
    async def has_booking_overlap(
        self, resource_id: UUID, start_utc: datetime, end_utc: datetime
    ) -> bool:
        """Whether an active booking strictly intersects ``[start_utc, end_utc)``."""
        pass

    @abstractmethod
    async def insert_booking_if_free(self, booking: Booking) -> bool:
        """Insert ``booking`` iff no active booking overlaps it. ``False`` on conflict."""
        pass

    @abstractmethod
    async def get_booking(self, booking_id: UUID) -> Booking | None:
        pass

    @abstractmethod
    async def list_resource_bookings(
        self,
        resource_id: UUID,
        status: str | None = None,
        starts_from: datetime | None = None,
        ends_until: datetime | None = None,
    ) -> list[Booking]:
        """Bookings of a resource ordered by start, optionally filtered."""
        pass

    @abstractmethod
    async def transition_booking(
        self,
        booking_id: UUID,
        guards: Mapping[str, Iterable[Any]],
        values: Mapping[str, Any],
    ) -> Booking | None:
        """Apply ``values`` iff every guarded column currently holds an allowed value.

        Returns the updated booking, or ``None`` when the guard did not match.
        """
        pass

    @abstractmethod
    async def expire_stale(self, created_before: datetime) -> list[UUID]:
        """Expire unpaid pending bookings created before the cutoff."""
        pass

    @abstractmethod
    async def list_refunds_to_retry(self, updated_before: datetime) -> list[Booking]:
        pass

    # Payout accounts

    @abstractmethod
    async def get_payout_account(self, owner_id: UUID) -> PayoutAccount | None:
        pass

    @abstractmethod
    async def save_payout_account(self, account: PayoutAccount) -> PayoutAccount:
        pass

    # Unit of work

    @abstractmethod
    async def commit(self) -> None:
        pass
