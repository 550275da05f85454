"""Celery background tasks for booking maintenance."""

import asyncio
import logging

from celery import shared_task

from app.database import get_db_context
from app.repositories.booking_repository import SqlBookingRepository
from app.services.booking_service import BookingService
from app.services.gateway_service import gateway_service

logger = logging.getLogger(__name__)

_loop: asyncio.AbstractEventLoop | None = None


def run_async(coro):
    """Run async function in sync context on a loop reused across tasks.

    The database pool binds its connections to the loop that opened them.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop.run_until_complete(coro)


# ==================== BOOKING TASKS ====================


@shared_task(bind=True, max_retries=3)
def expire_stale_bookings(self):
    """Expire pending bookings that were never paid.

    Runs every 5 minutes. Safe to overlap with itself: the update is guarded.
    """
    try:
        expired = run_async(_expire_stale_bookings())
        return {"status": "success", "expired": len(expired)}
    except Exception as exc:
        logger.exception("Expiration sweep failed")
        raise self.retry(exc=exc, countdown=60)


async def _expire_stale_bookings():
    async with get_db_context() as db:
        service = BookingService(SqlBookingRepository(db), gateway_service)
        return await service.expire_stale()


@shared_task(bind=True, max_retries=3)
def retry_failed_refunds(self):
    """Re-attempt refunds left requested or failed.

    Runs every 15 minutes. Each refund reuses its original idempotency key,
    so the processor never refunds twice. Stripe keeps the response of a
    keyed request for about 24 hours: a refund that was declined is replayed
    as the same decline until then, and only a retry after that window is a
    fresh attempt. Requests that never reached the processor (timeouts,
    connection resets) store nothing and are tried afresh on the next sweep.
    """
    try:
        refunded = run_async(_retry_failed_refunds())
        return {"status": "success", "refunded": refunded}
    except Exception as exc:
        logger.exception("Refund retry sweep failed")
        raise self.retry(exc=exc, countdown=300)


async def _retry_failed_refunds():
    async with get_db_context() as db:
        service = BookingService(SqlBookingRepository(db), gateway_service)
        return await service.retry_refunds()
