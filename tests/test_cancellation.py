"""Tests for cancellation, refunds and the refund retry sweep."""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import AuthorizationError, InvalidBookingStatus
from app.core.idempotency import generate_idempotency_key
from app.domain.cancellation_policy import CancellationActor
from conftest import zurich

START = zurich(2026, 12, 1, 9)
END = zurich(2026, 12, 1, 11)


async def _paid_booking(booking_service, resource, renter_id, payment_intent="pi_test_1"):
    booking = await booking_service.create(resource.id, renter_id, START, END, 40)
    session = {"id": "cs_test_1", "metadata": {"booking_id": str(booking.id)}}
    if payment_intent:
        session["payment_intent"] = payment_intent
    return await booking_service.complete_payment(session)


class TestCancel:
    """Tests for BookingService.cancel."""

    @pytest.mark.asyncio
    async def test_early_cancel_refunds(self, booking_service, gateway, repo, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)

        result = await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(hours=13)
        )

        assert result.refunded
        assert result.refund_status == "refunded"
        assert gateway.refunds == [
            {
                "payment_ref": "pi_test_1",
                "idempotency_key": generate_idempotency_key(
                    "refund_create", booking.id, {"actor": "renter"}
                ),
                "reason": f"Booking {booking.id} cancelled by renter",
            }
        ]
        stored = repo.bookings[booking.id]
        assert stored.status == "cancelled"
        assert stored.cancelled_by == "renter"
        assert stored.payment_status == "refunded"
        assert stored.refund_ref == "re_test_1"

    @pytest.mark.asyncio
    async def test_exactly_at_cutoff_refunds(self, booking_service, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)

        result = await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(hours=12)
        )

        assert result.refunded

    @pytest.mark.asyncio
    async def test_late_cancel_keeps_payment(self, booking_service, gateway, repo, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)

        result = await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(hours=11)
        )

        assert not result.refunded
        assert result.refund_status == "none"
        assert gateway.refunds == []
        stored = repo.bookings[booking.id]
        assert stored.status == "cancelled"
        assert stored.payment_status == "paid"

    @pytest.mark.asyncio
    async def test_unpaid_cancel_releases_interval(self, booking_service, gateway, repo, resource, renter_id):
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)

        result = await booking_service.cancel(booking.id, CancellationActor.RENTER, renter_id)

        assert not result.refunded
        assert gateway.refunds == []
        assert not await repo.has_booking_overlap(resource.id, START, END)

    @pytest.mark.asyncio
    async def test_cancel_twice_refunds_once(self, booking_service, gateway, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)
        now = START - timedelta(days=2)

        first = await booking_service.cancel(booking.id, CancellationActor.RENTER, renter_id, now=now)
        second = await booking_service.cancel(booking.id, CancellationActor.RENTER, renter_id, now=now)

        assert first.refunded and not first.already_cancelled
        assert second.already_cancelled and not second.refunded
        assert second.refund_status == "refunded"
        assert len(gateway.refunds) == 1

    @pytest.mark.asyncio
    async def test_expired_booking_cannot_be_cancelled(self, booking_service, repo, resource, renter_id):
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)
        repo.bookings[booking.id].status = "expired"

        with pytest.raises(InvalidBookingStatus):
            await booking_service.cancel(booking.id, CancellationActor.RENTER, renter_id)

    @pytest.mark.asyncio
    async def test_owner_cancel_uses_same_cutoff(self, booking_service, gateway, repo, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)

        result = await booking_service.cancel(
            booking.id, CancellationActor.OWNER, resource.owner_id, now=START - timedelta(days=1)
        )

        assert result.refunded
        assert repo.bookings[booking.id].cancelled_by == "owner"
        assert gateway.refunds[0]["idempotency_key"] == generate_idempotency_key(
            "refund_create", booking.id, {"actor": "owner"}
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("actor", [CancellationActor.RENTER, CancellationActor.OWNER])
    async def test_strangers_cannot_cancel(self, booking_service, resource, renter_id, actor):
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)

        with pytest.raises(AuthorizationError):
            await booking_service.cancel(booking.id, actor, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_renter_cannot_act_as_owner(self, booking_service, resource, renter_id):
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)

        with pytest.raises(AuthorizationError):
            await booking_service.cancel(booking.id, CancellationActor.OWNER, renter_id)


class TestRefundFailures:
    """Failed refunds never reopen a booking and are retried later."""

    @pytest.mark.asyncio
    async def test_failed_refund_then_retry(self, booking_service, gateway, repo, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)
        gateway.fail_refund = True

        result = await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(days=1)
        )

        assert result.refund_status == "failed"
        stored = repo.bookings[booking.id]
        assert stored.status == "cancelled"
        assert stored.payment_status == "paid"

        gateway.fail_refund = False
        refunded = await booking_service.retry_refunds(now=datetime.now(UTC) + timedelta(minutes=11))

        assert refunded == 1
        assert stored.refund_status == "refunded"
        assert stored.payment_status == "refunded"
        assert len(gateway.refunds) == 2
        assert gateway.refunds[0]["idempotency_key"] == gateway.refunds[1]["idempotency_key"]

    @pytest.mark.asyncio
    async def test_retry_waits_for_min_age(self, booking_service, gateway, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)
        gateway.fail_refund = True
        await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(days=1)
        )
        gateway.fail_refund = False

        assert await booking_service.retry_refunds(now=datetime.now(UTC)) == 0
        assert len(gateway.refunds) == 1

    @pytest.mark.asyncio
    async def test_declined_retry_stays_owed_with_same_key(self, booking_service, gateway, repo, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)
        gateway.fail_refund = True
        await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(days=1)
        )

        first = await booking_service.retry_refunds(now=datetime.now(UTC) + timedelta(minutes=11))
        second = await booking_service.retry_refunds(now=datetime.now(UTC) + timedelta(hours=25))

        assert first == second == 0
        assert repo.bookings[booking.id].refund_status == "failed"
        assert repo.bookings[booking.id].payment_status == "paid"
        assert len({r["idempotency_key"] for r in gateway.refunds}) == 1
        assert len(gateway.refunds) == 3

    @pytest.mark.asyncio
    async def test_gateway_exception_marks_refund_failed(self, booking_service, gateway, repo, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id)
        gateway.process_refund = AsyncMock(side_effect=ConnectionError("reset by peer"))

        result = await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(days=1)
        )

        assert result.refund_status == "failed"
        assert repo.bookings[booking.id].status == "cancelled"

    @pytest.mark.asyncio
    async def test_missing_payment_reference(self, booking_service, gateway, repo, resource, renter_id):
        booking = await _paid_booking(booking_service, resource, renter_id, payment_intent=None)

        result = await booking_service.cancel(
            booking.id, CancellationActor.RENTER, renter_id, now=START - timedelta(days=1)
        )

        assert result.refund_status == "missing_reference"
        assert gateway.refunds == []
        assert repo.bookings[booking.id].refund_status == "missing_reference"

    @pytest.mark.asyncio
    async def test_retry_refunds_orphan_payment(self, booking_service, gateway, repo, resource, renter_id):
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)
        await booking_service.cancel(booking.id, CancellationActor.RENTER, renter_id)
        await booking_service.complete_payment(
            {"id": "cs_late", "payment_intent": "pi_late", "metadata": {"booking_id": str(booking.id)}}
        )

        refunded = await booking_service.retry_refunds(now=datetime.now(UTC) + timedelta(minutes=11))

        assert refunded == 1
        assert gateway.refunds[0]["payment_ref"] == "pi_late"
        assert repo.bookings[booking.id].payment_status == "refunded"
