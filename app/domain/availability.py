"""Availability decision vocabulary and pure checks.

Denials are evaluated in a fixed order and short-circuit on the first
failure:

1. RESOURCE_INACTIVE - the space is switched off by its owner
2. BLACKOUT - an ad hoc closure intersects the interval
3. OUTSIDE_AVAILABILITY - the weekly schedule does not cover the interval
4. BOOKING_OVERLAP - an active booking intersects the interval
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.domain.calendar import segment_interval
from app.domain.weekly_schedule import SlotLike, enabled_windows, is_segment_covered


class AvailabilityCode(str, Enum):
    """Stable denial reason codes."""

    RESOURCE_INACTIVE = "RESOURCE_INACTIVE"
    BLACKOUT = "BLACKOUT"
    OUTSIDE_AVAILABILITY = "OUTSIDE_AVAILABILITY"
    BOOKING_OVERLAP = "BOOKING_OVERLAP"


DENIAL_MESSAGES: dict[AvailabilityCode, str] = {
    AvailabilityCode.RESOURCE_INACTIVE: "This parking space is currently disabled",
    AvailabilityCode.BLACKOUT: "The parking space is closed during this period",
    AvailabilityCode.OUTSIDE_AVAILABILITY: "The requested time is outside the owner's opening hours",
    AvailabilityCode.BOOKING_OVERLAP: "This time slot is already booked",
}


@dataclass(frozen=True)
class AvailabilityDecision:
    """Outcome of an availability evaluation."""

    available: bool
    reason_code: AvailabilityCode | None = None

    @classmethod
    def allow(cls) -> "AvailabilityDecision":
        return cls(available=True)

    @classmethod
    def deny(cls, code: AvailabilityCode) -> "AvailabilityDecision":
        return cls(available=False, reason_code=code)

    @property
    def message(self) -> str | None:
        if self.reason_code is None:
            return None
        return DENIAL_MESSAGES[self.reason_code]


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Strict half-open intersection: touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


def schedule_allows(
    start_utc: datetime,
    end_utc: datetime,
    slots: Sequence[SlotLike],
    timezone: str,
    max_segments: int,
) -> bool:
    """Apply the weekly-schedule policy.

    No slot rows at all means the schedule was never configured and the
    resource is open by default. Once any row exists the schedule is
    authoritative: with nothing enabled every interval is refused, otherwise
    each local-day segment must fit inside one enabled slot.
    """
    if not slots:
        return True

    windows = enabled_windows(slots)
    if not windows:
        return False

    segments = segment_interval(start_utc, end_utc, timezone, max_segments=max_segments)
    return all(is_segment_covered(segment, windows) for segment in segments)
