"""SQLAlchemy implementation of the booking store."""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, time
from typing import Any
from uuid import UUID

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.booking_state import AWAITING_PAYMENT_STATUSES, CANCELLED, EXPIRED, INACTIVE_STATUSES
from app.domain.payment_state import PAID, RETRYABLE_REFUND_STATUSES, UNPAID
from app.models import BlackoutInterval, Booking, PayoutAccount, Resource, WeeklyAvailabilitySlot
from app.models.booking import NO_OVERLAP_CONSTRAINT
from app.repositories.base import BookingRepository

logger = logging.getLogger(__name__)


class SqlBookingRepository(BookingRepository):
    """Booking store backed by an ``AsyncSession``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_resource(self, resource_id: UUID) -> Resource | None:
        return await self.db.get(Resource, resource_id)

    async def list_weekly_slots(self, resource_id: UUID) -> list[WeeklyAvailabilitySlot]:
        result = await self.db.execute(
            select(WeeklyAvailabilitySlot)
            .where(WeeklyAvailabilitySlot.resource_id == resource_id)
            .order_by(WeeklyAvailabilitySlot.weekday, WeeklyAvailabilitySlot.start_time)
        )
        return list(result.scalars().all())

    async def replace_weekly_slots(
        self,
        resource_id: UUID,
        slots: Iterable[tuple[int, time, time, bool]],
    ) -> list[WeeklyAvailabilitySlot]:
        await self.db.execute(
            delete(WeeklyAvailabilitySlot).where(WeeklyAvailabilitySlot.resource_id == resource_id)
        )
        rows = [
            WeeklyAvailabilitySlot(
                resource_id=resource_id,
                weekday=weekday,
                start_time=start,
                end_time=end,
                enabled=enabled,
            )
            for weekday, start, end, enabled in slots
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def has_blackout_overlap(
        self, resource_id: UUID, start_utc: datetime, end_utc: datetime
    ) -> bool:
        stmt = select(
            exists().where(
                BlackoutInterval.resource_id == resource_id,
                BlackoutInterval.start_utc < end_utc,
                BlackoutInterval.end_utc > start_utc,
            )
        )
        return bool(await self.db.scalar(stmt))

    async def list_blackouts(self, resource_id: UUID) -> list[BlackoutInterval]:
        result = await self.db.execute(
            select(BlackoutInterval)
            .where(BlackoutInterval.resource_id == resource_id)
            .order_by(BlackoutInterval.start_utc)
        )
        return list(result.scalars().all())

    async def add_blackout(
        self, resource_id: UUID, start_utc: datetime, end_utc: datetime, reason: str | None
    ) -> BlackoutInterval:
        blackout = BlackoutInterval(
            resource_id=resource_id, start_utc=start_utc, end_utc=end_utc, reason=reason
        )
        self.db.add(blackout)
        await self.db.flush()
        return blackout

    async def get_blackout(self, blackout_id: UUID) -> BlackoutInterval | None:
        return await self.db.get(BlackoutInterval, blackout_id)

    async def delete_blackout(self, blackout_id: UUID) -> None:
        await self.db.execute(delete(BlackoutInterval).where(BlackoutInterval.id == blackout_id))

    async def has_booking_overlap(
        self, resource_id: UUID, start_utc: datetime, end_utc: datetime
    ) -> bool:
        stmt = select(
            exists().where(
                Booking.resource_id == resource_id,
                Booking.status.not_in(INACTIVE_STATUSES),
                Booking.start_utc < end_utc,
                Booking.end_utc > start_utc,
            )
        )
        return bool(await self.db.scalar(stmt))

    async def insert_booking_if_free(self, booking: Booking) -> bool:
        # Serialize writers per resource; the exclusion constraint backs this up.
        await self.db.execute(
            select(Resource.id).where(Resource.id == booking.resource_id).with_for_update()
        )
        if await self.has_booking_overlap(booking.resource_id, booking.start_utc, booking.end_utc):
            return False

        try:
            async with self.db.begin_nested():
                self.db.add(booking)
                await self.db.flush()
        except IntegrityError as e:
            if NO_OVERLAP_CONSTRAINT in str(e.orig):
                logger.info(f"Exclusion constraint rejected booking on resource {booking.resource_id}")
                return False
            raise
        return True

    async def get_booking(self, booking_id: UUID) -> Booking | None:
        return await self.db.get(Booking, booking_id)

    async def list_resource_bookings(
        self,
        resource_id: UUID,
        status: str | None = None,
        starts_from: datetime | None = None,
        ends_until: datetime | None = None,
    ) -> list[Booking]:
        stmt = select(Booking).where(Booking.resource_id == resource_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if starts_from is not None:
            stmt = stmt.where(Booking.start_utc >= starts_from)
        if ends_until is not None:
            stmt = stmt.where(Booking.end_utc <= ends_until)
        result = await self.db.execute(stmt.order_by(Booking.start_utc))
        return list(result.scalars().all())

    async def transition_booking(
        self,
        booking_id: UUID,
        guards: Mapping[str, Iterable[Any]],
        values: Mapping[str, Any],
    ) -> Booking | None:
        conditions = [Booking.id == booking_id]
        for column, allowed in guards.items():
            conditions.append(getattr(Booking, column).in_(list(allowed)))

        result = await self.db.execute(
            update(Booking)
            .where(*conditions)
            .values(**values)
            .returning(Booking)
            .execution_options(synchronize_session="fetch")
        )
        return result.scalar_one_or_none()

    async def expire_stale(self, created_before: datetime) -> list[UUID]:
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.status.in_(AWAITING_PAYMENT_STATUSES),
                Booking.payment_status == UNPAID,
                Booking.created_at < created_before,
            )
            .values(status=EXPIRED)
            .returning(Booking.id)
            .execution_options(synchronize_session=False)
        )
        return list(result.scalars().all())

    async def list_refunds_to_retry(self, updated_before: datetime) -> list[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.status.in_([CANCELLED, EXPIRED]),
                Booking.payment_status == PAID,
                Booking.refund_status.in_(RETRYABLE_REFUND_STATUSES),
                Booking.updated_at < updated_before,
            )
            .order_by(Booking.updated_at)
        )
        return list(result.scalars().all())

    async def get_payout_account(self, owner_id: UUID) -> PayoutAccount | None:
        result = await self.db.execute(
            select(PayoutAccount).where(PayoutAccount.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def save_payout_account(self, account: PayoutAccount) -> PayoutAccount:
        self.db.add(account)
        await self.db.flush()
        return account

    async def commit(self) -> None:
        await self.db.commit()
