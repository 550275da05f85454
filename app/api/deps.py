"""API dependencies for authentication and service wiring."""

import hmac
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.idempotency import ProcessedEventStore, processed_event_store
from app.core.security import verify_token
from app.database import get_db
from app.repositories.base import BookingRepository
from app.repositories.booking_repository import SqlBookingRepository
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.gateway_service import GatewayService, gateway_service
from app.services.owner_schedule_service import OwnerScheduleService
from app.services.payout_service import PayoutService

# Security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller. Identity is issued elsewhere; only the id is trusted."""

    id: UUID


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> CurrentUser:
    """Get the current authenticated user from JWT token."""
    if credentials is None:
        raise AuthenticationError("Missing bearer token")

    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    try:
        return CurrentUser(id=UUID(str(user_id)))
    except ValueError:
        raise AuthenticationError("Invalid token subject")


async def require_cleanup_secret(
    x_cleanup_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for internal cron endpoints."""
    expected = settings.cleanup_secret
    if not expected or not x_cleanup_secret:
        raise AuthorizationError("Invalid cleanup secret")
    if not hmac.compare_digest(x_cleanup_secret.encode(), expected.encode()):
        raise AuthorizationError("Invalid cleanup secret")


async def get_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingRepository:
    return SqlBookingRepository(db)


def get_gateway_service() -> GatewayService:
    return gateway_service


def get_processed_event_store() -> ProcessedEventStore:
    return processed_event_store


async def get_availability_service(
    repo: Annotated[BookingRepository, Depends(get_repository)],
) -> AvailabilityService:
    return AvailabilityService(repo)


async def get_booking_service(
    repo: Annotated[BookingRepository, Depends(get_repository)],
    gateway: Annotated[GatewayService, Depends(get_gateway_service)],
) -> BookingService:
    return BookingService(repo, gateway)


async def get_owner_schedule_service(
    repo: Annotated[BookingRepository, Depends(get_repository)],
) -> OwnerScheduleService:
    return OwnerScheduleService(repo)


async def get_payout_service(
    repo: Annotated[BookingRepository, Depends(get_repository)],
    gateway: Annotated[GatewayService, Depends(get_gateway_service)],
) -> PayoutService:
    return PayoutService(repo, gateway)


CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
