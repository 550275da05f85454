"""Tests for booking creation, payment and expiration."""

import asyncio
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidBookingStatus,
    PayoutAccountNotReady,
    UpstreamError,
    ValidationError,
)
from app.domain.cancellation_policy import CancellationActor
from conftest import zurich

START = zurich(2026, 12, 1, 9)
END = zurich(2026, 12, 1, 11)


@pytest.fixture
def payable_resource(repo, resource):
    repo.add_payout_account(resource.owner_id)
    return resource


def _session(booking, session_id="cs_test_1", payment_intent="pi_test_1"):
    return {
        "id": session_id,
        "payment_intent": payment_intent,
        "payment_status": "paid",
        "metadata": {"booking_id": str(booking.id)},
    }


class TestCreateBooking:
    """Tests for BookingService.create."""

    @pytest.mark.asyncio
    async def test_creates_pending_booking(self, booking_service, repo, resource, renter_id):
        booking = await booking_service.create(
            resource.id, renter_id, START, END, Decimal("24.50"), "chf"
        )

        assert booking.status == "pending"
        assert booking.payment_status == "unpaid"
        assert booking.refund_status == "none"
        assert booking.currency == "CHF"
        assert booking.total_amount == Decimal("24.50")
        assert repo.bookings[booking.id] is booking
        assert repo.commits == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("given,stored", [("10.005", Decimal("10.01")), ("10.025", Decimal("10.03")), ("7.3", Decimal("7.30"))])
    async def test_amount_rounds_half_up_to_centimes(self, booking_service, resource, renter_id, given, stored):
        booking = await booking_service.create(resource.id, renter_id, START, END, given)

        assert booking.total_amount == stored

    @pytest.mark.asyncio
    async def test_amount_rounding_to_zero_is_rejected(self, booking_service, repo, resource, renter_id):
        with pytest.raises(ValidationError):
            await booking_service.create(resource.id, renter_id, START, END, "0.004")

        assert repo.bookings == {}

    @pytest.mark.asyncio
    async def test_overlap_conflict(self, booking_service, resource, renter_id):
        await booking_service.create(resource.id, renter_id, START, END, 20)

        with pytest.raises(ConflictError) as exc_info:
            await booking_service.create(
                resource.id, uuid.uuid4(), START + timedelta(hours=1), END + timedelta(hours=1), 20
            )

        assert exc_info.value.code == "BOOKING_OVERLAP"
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_back_to_back_bookings_allowed(self, booking_service, resource, renter_id):
        await booking_service.create(resource.id, renter_id, START, END, 20)
        second = await booking_service.create(resource.id, uuid.uuid4(), END, END + timedelta(hours=2), 20)

        assert second.status == "pending"

    @pytest.mark.asyncio
    async def test_owner_cannot_book_own_resource(self, booking_service, resource):
        with pytest.raises(ValidationError):
            await booking_service.create(resource.id, resource.owner_id, START, END, 20)

    @pytest.mark.asyncio
    async def test_blackout_denial_leaves_no_booking(self, booking_service, repo, resource, renter_id):
        await repo.add_blackout(resource.id, START, END, "resurfacing")

        with pytest.raises(ConflictError) as exc_info:
            await booking_service.create(resource.id, renter_id, START, END, 20)

        assert exc_info.value.code == "BLACKOUT"
        assert repo.bookings == {}
        assert repo.commits == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "start,end,amount,currency",
        [
            (END, START, 20, "CHF"),
            (START, START, 20, "CHF"),
            (START, END, 0, "CHF"),
            (START, END, "abc", "CHF"),
            (START, END, 20, "CH"),
        ],
    )
    async def test_validation_happens_before_store_access(
        self, booking_service, repo, resource, renter_id, start, end, amount, currency
    ):
        repo.get_resource = AsyncMock(return_value=resource)

        with pytest.raises(ValidationError):
            await booking_service.create(resource.id, renter_id, start, end, amount, currency)

        repo.get_resource.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_creates_yield_single_booking(self, booking_service, repo, resource):
        attempts = [
            booking_service.create(resource.id, uuid.uuid4(), START, END, 20) for _ in range(10)
        ]

        results = await asyncio.gather(*attempts, return_exceptions=True)

        created = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(created) == 1
        assert len(conflicts) == 9
        assert all(c.code == "BOOKING_OVERLAP" for c in conflicts)
        assert len(repo.bookings) == 1


class TestInitiatePayment:
    """Tests for BookingService.initiate_payment."""

    @pytest.mark.asyncio
    async def test_opens_checkout_with_split(self, booking_service, gateway, repo, payable_resource, renter_id):
        booking = await booking_service.create(
            payable_resource.id, renter_id, START, END, Decimal("100.00"), "CHF"
        )

        result = await booking_service.initiate_payment(booking.id, renter_id)

        assert result.session_id == "cs_test_1"
        request = gateway.checkouts[0]
        assert request.amount_minor == 10000
        assert request.application_fee_minor == 1500
        assert request.currency == "chf"
        assert request.destination_account == repo.payout_accounts[payable_resource.owner_id].stripe_account_id
        assert request.success_url.startswith(f"https://parkeo.test/payment/success?bookingId={booking.id}")
        assert "{CHECKOUT_SESSION_ID}" in request.success_url
        assert request.idempotency_key

        stored = repo.bookings[booking.id]
        assert stored.status == "pending_payment"
        assert stored.payment_session_ref == "cs_test_1"
        assert stored.platform_fee_minor == 1500
        assert stored.owner_payout_minor == 8500

    @pytest.mark.asyncio
    async def test_same_booking_reuses_idempotency_key(self, booking_service, gateway, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)

        await booking_service.initiate_payment(booking.id, renter_id)
        await booking_service.initiate_payment(booking.id, renter_id)

        assert gateway.checkouts[0].idempotency_key == gateway.checkouts[1].idempotency_key

    @pytest.mark.asyncio
    async def test_fee_override_applies(self, booking_service, gateway, repo, renter_id):
        resource = repo.add_resource(platform_fee_override=Decimal("3.00"))
        repo.add_payout_account(resource.owner_id)
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)

        await booking_service.initiate_payment(booking.id, renter_id)

        assert gateway.checkouts[0].application_fee_minor == 300

    @pytest.mark.asyncio
    async def test_owner_without_payout_account(self, booking_service, resource, renter_id):
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)

        with pytest.raises(PayoutAccountNotReady):
            await booking_service.initiate_payment(booking.id, renter_id)

    @pytest.mark.asyncio
    async def test_owner_with_incomplete_onboarding(self, booking_service, repo, resource, renter_id):
        repo.add_payout_account(resource.owner_id, onboarded=False)
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)

        with pytest.raises(PayoutAccountNotReady):
            await booking_service.initiate_payment(booking.id, renter_id)

    @pytest.mark.asyncio
    async def test_only_renter_can_pay(self, booking_service, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)

        with pytest.raises(AuthorizationError):
            await booking_service.initiate_payment(booking.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_processor_failure_leaves_booking_pending(
        self, booking_service, gateway, repo, payable_resource, renter_id
    ):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        gateway.fail_checkout = True

        with pytest.raises(UpstreamError):
            await booking_service.initiate_payment(booking.id, renter_id)

        assert repo.bookings[booking.id].status == "pending"

    @pytest.mark.asyncio
    async def test_cannot_pay_cancelled_booking(self, booking_service, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        await booking_service.cancel(booking.id, CancellationActor.RENTER, renter_id)

        with pytest.raises(InvalidBookingStatus):
            await booking_service.initiate_payment(booking.id, renter_id)


class TestCompletePayment:
    """Tests for webhook-driven confirmation."""

    @pytest.mark.asyncio
    async def test_confirms_booking(self, booking_service, repo, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        await booking_service.initiate_payment(booking.id, renter_id)

        await booking_service.complete_payment(_session(booking))

        stored = repo.bookings[booking.id]
        assert stored.status == "confirmed"
        assert stored.payment_status == "paid"
        assert stored.payment_charge_ref == "pi_test_1"
        assert stored.confirmed_at is not None

    @pytest.mark.asyncio
    async def test_replay_is_a_no_op(self, booking_service, repo, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        await booking_service.initiate_payment(booking.id, renter_id)
        await booking_service.complete_payment(_session(booking))
        confirmed_at = repo.bookings[booking.id].confirmed_at

        await booking_service.complete_payment(_session(booking, payment_intent="pi_other"))

        stored = repo.bookings[booking.id]
        assert stored.payment_charge_ref == "pi_test_1"
        assert stored.confirmed_at == confirmed_at

    @pytest.mark.asyncio
    async def test_payment_after_cancel_queues_refund(self, booking_service, repo, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        await booking_service.initiate_payment(booking.id, renter_id)
        await booking_service.cancel(booking.id, CancellationActor.RENTER, renter_id)

        await booking_service.complete_payment(_session(booking))

        stored = repo.bookings[booking.id]
        assert stored.status == "cancelled"
        assert stored.payment_status == "paid"
        assert stored.refund_status == "requested"
        assert stored.payment_charge_ref == "pi_test_1"

    @pytest.mark.asyncio
    async def test_unknown_booking_is_ignored(self, booking_service):
        result = await booking_service.complete_payment(
            {"id": "cs_x", "metadata": {"booking_id": str(uuid.uuid4())}}
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_client_reference_fallback(self, booking_service, repo, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)

        await booking_service.complete_payment(
            {"id": "cs_y", "payment_intent": "pi_y", "client_reference_id": str(booking.id)}
        )

        assert repo.bookings[booking.id].status == "confirmed"


class TestExpiration:
    """Tests for session expiry and the stale-booking sweep."""

    @pytest.mark.asyncio
    async def test_expired_session_releases_booking(self, booking_service, repo, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        await booking_service.initiate_payment(booking.id, renter_id)

        assert await booking_service.expire_payment_session(_session(booking))
        assert repo.bookings[booking.id].status == "expired"

    @pytest.mark.asyncio
    async def test_stale_session_event_does_not_expire_newer_session(
        self, booking_service, repo, payable_resource, renter_id
    ):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        await booking_service.initiate_payment(booking.id, renter_id)
        await booking_service.initiate_payment(booking.id, renter_id)

        assert not await booking_service.expire_payment_session(_session(booking, "cs_test_1"))
        assert repo.bookings[booking.id].status == "pending_payment"

    @pytest.mark.asyncio
    async def test_sweep_frees_interval(self, booking_service, repo, resource, renter_id):
        booking = await booking_service.create(resource.id, renter_id, START, END, 40)

        untouched = await booking_service.expire_stale(now=datetime.now(UTC) + timedelta(minutes=5))
        expired = await booking_service.expire_stale(now=datetime.now(UTC) + timedelta(minutes=21))

        assert untouched == []
        assert expired == [booking.id]
        assert repo.bookings[booking.id].status == "expired"
        rebooked = await booking_service.create(resource.id, uuid.uuid4(), START, END, 40)
        assert rebooked.status == "pending"

    @pytest.mark.asyncio
    async def test_sweep_skips_confirmed(self, booking_service, repo, payable_resource, renter_id):
        booking = await booking_service.create(payable_resource.id, renter_id, START, END, 40)
        await booking_service.complete_payment(_session(booking))

        expired = await booking_service.expire_stale(now=datetime.now(UTC) + timedelta(hours=1))

        assert expired == []
        assert repo.bookings[booking.id].status == "confirmed"
