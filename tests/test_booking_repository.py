"""Tests for the SQL booking repository.

The session is mocked and every statement the repository sends is compiled
with the PostgreSQL dialect, so no database is needed. Tests marked
``postgres`` run against ``TEST_DATABASE_URL`` when it is set.
"""

import asyncio
import os
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.booking_state import AWAITING_PAYMENT_STATUSES, CONFIRMED, EXPIRED
from app.domain.payment_state import PAID, UNPAID
from app.models import Booking
from app.repositories.booking_repository import SqlBookingRepository

START = datetime(2026, 12, 1, 8, 0, tzinfo=UTC)
END = datetime(2026, 12, 1, 10, 0, tzinfo=UTC)


class _Savepoint:
    """Stands in for the transaction returned by ``begin_nested``."""

    def __init__(self):
        self.entered = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, *exc_info):
        return False


def _session():
    db = AsyncMock(spec=AsyncSession)
    db.execute.return_value = MagicMock()
    db.add = MagicMock()
    db.begin_nested = MagicMock(return_value=_Savepoint())
    return db


def _compile(stmt):
    compiled = stmt.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


def _booking() -> Booking:
    return Booking(
        id=uuid.uuid4(),
        resource_id=uuid.uuid4(),
        renter_id=uuid.uuid4(),
        start_utc=START,
        end_utc=END,
        status="pending",
        payment_status=UNPAID,
        refund_status="none",
        total_amount=Decimal("20.00"),
        currency="CHF",
    )


def _integrity_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT INTO bookings ...", {}, Exception(message))


class TestInsertBookingIfFree:
    """Tests for SqlBookingRepository.insert_booking_if_free."""

    @pytest.mark.asyncio
    async def test_locks_resource_before_overlap_check(self):
        db = _session()
        sent = []

        async def execute(stmt, *args, **kwargs):
            sent.append(("execute", stmt))
            return MagicMock()

        async def scalar(stmt, *args, **kwargs):
            sent.append(("scalar", stmt))
            return False

        db.execute.side_effect = execute
        db.scalar.side_effect = scalar
        booking = _booking()

        inserted = await SqlBookingRepository(db).insert_booking_if_free(booking)

        assert inserted
        assert [kind for kind, _ in sent] == ["execute", "scalar"]
        lock_sql, _ = _compile(sent[0][1])
        overlap_sql, _ = _compile(sent[1][1])
        assert lock_sql.startswith("SELECT resources.id")
        assert lock_sql.endswith("FOR UPDATE")
        assert "EXISTS" in overlap_sql
        assert "bookings.status NOT IN" in overlap_sql
        db.add.assert_called_once_with(booking)
        db.flush.assert_awaited_once()
        assert db.begin_nested.return_value.entered

    @pytest.mark.asyncio
    async def test_overlap_skips_insert(self):
        db = _session()
        db.scalar.return_value = True

        inserted = await SqlBookingRepository(db).insert_booking_if_free(_booking())

        assert not inserted
        db.add.assert_not_called()
        db.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exclusion_constraint_reports_conflict(self):
        db = _session()
        db.scalar.return_value = False
        db.flush.side_effect = _integrity_error(
            'conflicting key value violates exclusion constraint "bookings_no_overlap"'
        )

        inserted = await SqlBookingRepository(db).insert_booking_if_free(_booking())

        assert not inserted

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self):
        db = _session()
        db.scalar.return_value = False
        db.flush.side_effect = _integrity_error(
            'insert or update on table "bookings" violates foreign key constraint "bookings_resource_id_fkey"'
        )

        with pytest.raises(IntegrityError):
            await SqlBookingRepository(db).insert_booking_if_free(_booking())


class TestGuardedUpdates:
    @pytest.mark.asyncio
    async def test_transition_applies_every_guard(self):
        db = _session()
        booking_id = uuid.uuid4()

        result = await SqlBookingRepository(db).transition_booking(
            booking_id,
            guards={"status": AWAITING_PAYMENT_STATUSES, "payment_status": [UNPAID]},
            values={"status": CONFIRMED, "payment_status": PAID},
        )

        stmt = db.execute.await_args.args[0]
        sql, params = _compile(stmt)
        assert sql.startswith("UPDATE bookings SET")
        assert "WHERE bookings.id = " in sql
        assert "AND bookings.status IN (" in sql
        assert "AND bookings.payment_status IN (" in sql
        assert "RETURNING" in sql
        in_lists = [set(value) for value in params.values() if isinstance(value, (list, tuple))]
        assert set(AWAITING_PAYMENT_STATUSES) in in_lists
        assert {UNPAID} in in_lists
        assert params["status"] == CONFIRMED
        assert params["payment_status"] == PAID
        assert result is db.execute.return_value.scalar_one_or_none.return_value

    @pytest.mark.asyncio
    async def test_transition_without_guards_only_matches_id(self):
        db = _session()

        await SqlBookingRepository(db).transition_booking(
            uuid.uuid4(), guards={}, values={"refund_status": "requested"}
        )

        sql, _ = _compile(db.execute.await_args.args[0])
        where = sql.split("WHERE", 1)[1]
        assert " IN (" not in where

    @pytest.mark.asyncio
    async def test_expire_stale_is_guarded(self):
        db = _session()
        expired_ids = [uuid.uuid4(), uuid.uuid4()]
        db.execute.return_value.scalars.return_value.all.return_value = expired_ids
        cutoff = datetime(2026, 12, 1, 7, 40, tzinfo=UTC)

        result = await SqlBookingRepository(db).expire_stale(cutoff)

        sql, params = _compile(db.execute.await_args.args[0])
        assert sql.startswith("UPDATE bookings SET status=")
        assert "bookings.status IN (" in sql
        assert "bookings.payment_status = " in sql
        assert "bookings.created_at < " in sql
        assert sql.endswith("RETURNING bookings.id")
        assert params["status"] == EXPIRED
        assert UNPAID in params.values()
        assert cutoff in params.values()
        assert result == expired_ids


@pytest.mark.postgres
@pytest.mark.skipif(not os.getenv("TEST_DATABASE_URL"), reason="TEST_DATABASE_URL not set")
class TestPostgresExclusion:
    """Concurrent inserts against a real database."""

    @pytest.mark.asyncio
    async def test_only_one_overlapping_booking_commits(self):
        from sqlalchemy import func, select
        from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

        from app.database import Base
        from app.models import Resource

        engine = create_async_engine(os.environ["TEST_DATABASE_URL"])
        sessions = async_sessionmaker(engine, expire_on_commit=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)

        try:
            resource = Resource(id=uuid.uuid4(), owner_id=uuid.uuid4(), title="Covered spot")
            async with sessions() as db:
                db.add(resource)
                await db.commit()

            async def attempt(offset_minutes: int) -> bool:
                booking = _booking()
                booking.resource_id = resource.id
                booking.start_utc = START.replace(minute=offset_minutes)
                async with sessions() as db:
                    inserted = await SqlBookingRepository(db).insert_booking_if_free(booking)
                    await db.commit()
                    return inserted

            outcomes = await asyncio.gather(*(attempt(i * 5) for i in range(6)))

            assert outcomes.count(True) == 1
            async with sessions() as db:
                stored = await db.scalar(
                    select(func.count()).select_from(Booking).where(Booking.resource_id == resource.id)
                )
            assert stored == 1
        finally:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
            await engine.dispose()
