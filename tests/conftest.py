"""Shared fixtures.

Tests run against the in-memory repository and a recording gateway; no
database, Redis or processor is contacted.
"""

import os

# Settings are read at import time; keep them deterministic.
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("STRIPE_SECRET_KEY", "")

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from app.config import Settings
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.gateway_service import GatewayService
from fakes import InMemoryBookingRepository, RecordingGateway

ZURICH = ZoneInfo("Europe/Zurich")


def zurich(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """A Zurich wall-clock instant expressed in UTC."""
    return datetime(year, month, day, hour, minute, tzinfo=ZURICH).astimezone(UTC)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        availability_timezone="Europe/Zurich",
        availability_enforcement_enabled=True,
        max_calendar_segments=40,
        refund_cutoff_hours=12,
        pending_payment_timeout_minutes=20,
        refund_retry_min_age_minutes=10,
        app_base_url="https://parkeo.test",
    )


@pytest.fixture
def repo() -> InMemoryBookingRepository:
    return InMemoryBookingRepository()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def availability_service(repo, settings) -> AvailabilityService:
    return AvailabilityService(repo, settings)


@pytest.fixture
def booking_service(repo, gateway, settings) -> BookingService:
    return BookingService(repo, GatewayService(gateway=gateway), settings)


@pytest.fixture
def resource(repo):
    """An active resource with no weekly schedule (open around the clock)."""
    return repo.add_resource()


@pytest.fixture
def renter_id():
    import uuid

    return uuid.uuid4()
