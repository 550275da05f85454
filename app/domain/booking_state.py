"""Booking state machine."""

from app.core.exceptions import InvalidBookingStatus

PENDING = "pending"
PENDING_PAYMENT = "pending_payment"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
EXPIRED = "expired"

BOOKING_TRANSITIONS = {
    PENDING: {PENDING_PAYMENT, CONFIRMED, CANCELLED, EXPIRED},
    PENDING_PAYMENT: {PENDING_PAYMENT, CONFIRMED, CANCELLED, EXPIRED},
    CONFIRMED: {CANCELLED},
    CANCELLED: set(),
    EXPIRED: set(),
}

# Bookings in these states no longer hold their interval.
INACTIVE_STATUSES = frozenset({CANCELLED, EXPIRED})

# Unpaid holds the expiration sweep may release.
AWAITING_PAYMENT_STATUSES = frozenset({PENDING, PENDING_PAYMENT})


def can_transition(current: str, target: str) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())


def assert_booking_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidBookingStatus(
            f"Invalid booking transition: {current} → {target}"
        )
