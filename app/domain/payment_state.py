"""Payment and refund state machines."""

from app.core.exceptions import InvalidBookingStatus

# payment_status
UNPAID = "unpaid"
PAID = "paid"
REFUNDED = "refunded"

PAYMENT_TRANSITIONS = {
    UNPAID: {PAID},
    PAID: {REFUNDED},
    REFUNDED: set(),
}

# refund_status
REFUND_NONE = "none"
REFUND_REQUESTED = "requested"
REFUND_REFUNDING = "refunding"
REFUND_REFUNDED = "refunded"
REFUND_FAILED = "failed"
REFUND_MISSING_REFERENCE = "missing_reference"

REFUND_TRANSITIONS = {
    REFUND_NONE: {REFUND_REQUESTED},
    REFUND_REQUESTED: {REFUND_REFUNDING, REFUND_MISSING_REFERENCE},
    REFUND_REFUNDING: {REFUND_REFUNDED, REFUND_FAILED},
    REFUND_FAILED: {REFUND_REFUNDING},
    REFUND_MISSING_REFERENCE: set(),
    REFUND_REFUNDED: set(),
}

# Refunds the retry sweep is allowed to pick up again.
RETRYABLE_REFUND_STATUSES = frozenset({REFUND_REQUESTED, REFUND_FAILED})


def assert_payment_transition(current: str, target: str) -> None:
    allowed = PAYMENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidBookingStatus(
            f"Invalid payment transition: {current} → {target}"
        )


def assert_refund_transition(current: str, target: str) -> None:
    allowed = REFUND_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidBookingStatus(
            f"Invalid refund transition: {current} → {target}"
        )
