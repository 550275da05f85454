"""Recurring weekly availability evaluation."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import time
from typing import Protocol

from app.domain.calendar import MINUTES_PER_DAY, DaySegment

# "All day" is conventionally stored as 00:00-23:59.
END_OF_DAY_ALIAS = MINUTES_PER_DAY - 1


class SlotLike(Protocol):
    weekday: int
    start_time: time
    end_time: time
    enabled: bool


@dataclass(frozen=True)
class SlotWindow:
    """A weekly slot converted to minutes-of-day."""

    weekday: int
    start: int
    end: int


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def to_window(slot: SlotLike) -> SlotWindow | None:
    """Convert an enabled, well-formed slot to a window; otherwise ``None``."""
    if not slot.enabled:
        return None
    if not 1 <= slot.weekday <= 7:
        return None

    start = time_to_minutes(slot.start_time)
    end = time_to_minutes(slot.end_time)
    if end <= start:
        return None
    if end == END_OF_DAY_ALIAS:
        end = MINUTES_PER_DAY
    return SlotWindow(weekday=slot.weekday, start=start, end=end)


def enabled_windows(slots: Iterable[SlotLike]) -> list[SlotWindow]:
    windows = (to_window(slot) for slot in slots)
    return [w for w in windows if w is not None]


def is_segment_covered(segment: DaySegment, windows: Iterable[SlotWindow]) -> bool:
    """A segment is covered when a single window of its weekday contains it.

    Coverage by the union of adjacent windows is intentionally not supported.
    """
    return any(
        w.weekday == segment.weekday
        and w.start <= segment.start_minute
        and w.end >= segment.end_minute
        for w in windows
    )
