"""Cancellation policy domain logic.

A cancelled booking is refunded in full when it was paid and the cancellation
happens at least ``refund_cutoff_hours`` before the booked start. Later
cancellations keep the payment.
"""

from datetime import UTC, datetime
from enum import Enum

from app.domain.calendar import ensure_utc
from app.domain.payment_state import PAID


class CancellationActor(str, Enum):
    """Who initiated a cancellation."""

    RENTER = "renter"
    OWNER = "owner"


def hours_until_start(start_utc: datetime, now: datetime | None = None) -> float:
    """Hours between ``now`` and the booking start (negative once started)."""
    now = ensure_utc(now) if now else datetime.now(UTC)
    return (ensure_utc(start_utc) - now).total_seconds() / 3600


def is_refund_eligible(
    payment_status: str,
    start_utc: datetime,
    refund_cutoff_hours: int,
    now: datetime | None = None,
) -> bool:
    """Whether cancelling now entitles the renter to a refund."""
    if payment_status != PAID:
        return False
    return hours_until_start(start_utc, now) >= refund_cutoff_hours
