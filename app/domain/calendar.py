"""Calendar segmentation of UTC intervals into local-day pieces.

A booking interval is cut at every local midnight of the resource's reference
timezone so that each piece can be checked against the weekly schedule of
its own weekday. Boundaries are computed in local calendar terms, so 23- and
25-hour days around daylight-saving transitions need no special casing.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.core.exceptions import IntervalTooLongError, ValidationError

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class DaySegment:
    """Portion of an interval confined to one local calendar day."""

    weekday: int  # ISO weekday, Monday=1 .. Sunday=7
    start_minute: int
    end_minute: int  # 1440 when the segment runs up to the next local midnight
    start_utc: datetime
    end_utc: datetime


def ensure_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _next_local_midnight(instant: datetime, tz: ZoneInfo) -> datetime:
    local_date = instant.astimezone(tz).date()
    boundary = datetime.combine(local_date + timedelta(days=1), time.min, tzinfo=tz)
    return boundary.astimezone(UTC)


def _minute_of_day(instant: datetime, tz: ZoneInfo) -> int:
    local = instant.astimezone(tz)
    return local.hour * 60 + local.minute


def _end_minute_of_day(instant: datetime, tz: ZoneInfo) -> int:
    """Minute of day an end instant reaches, counting a started minute as used."""
    local = instant.astimezone(tz)
    minute = local.hour * 60 + local.minute
    if local.second or local.microsecond:
        minute += 1
    return minute


def segment_interval(
    start_utc: datetime,
    end_utc: datetime,
    timezone: str,
    max_segments: int = 40,
) -> list[DaySegment]:
    """Split ``[start_utc, end_utc)`` into contiguous per-local-day segments.

    Raises:
        ValidationError: if the interval is empty or reversed.
        IntervalTooLongError: if more than ``max_segments`` segments are needed.
    """
    start = ensure_utc(start_utc)
    end = ensure_utc(end_utc)
    if end <= start:
        raise ValidationError("end must be after start")

    tz = ZoneInfo(timezone)
    segments: list[DaySegment] = []
    cursor = start

    while cursor < end:
        if len(segments) >= max_segments:
            raise IntervalTooLongError(max_segments)

        boundary = _next_local_midnight(cursor, tz)
        seg_end = min(boundary, end)

        if seg_end == boundary:
            end_minute = MINUTES_PER_DAY
        else:
            end_minute = _end_minute_of_day(seg_end, tz)

        segments.append(
            DaySegment(
                weekday=cursor.astimezone(tz).isoweekday(),
                start_minute=_minute_of_day(cursor, tz),
                end_minute=end_minute,
                start_utc=cursor,
                end_utc=seg_end,
            )
        )
        cursor = seg_end

    return segments
