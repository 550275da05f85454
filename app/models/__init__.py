"""Database models."""

from app.models.booking import Booking
from app.models.payout import PayoutAccount
from app.models.resource import BlackoutInterval, Resource, WeeklyAvailabilitySlot

__all__ = [
    # Resource
    "Resource",
    "WeeklyAvailabilitySlot",
    "BlackoutInterval",
    # Booking
    "Booking",
    # Payout
    "PayoutAccount",
]
