"""Booking lifecycle service.

Drives a booking through creation, payment, confirmation, cancellation,
refund and expiration. Every state change is a guarded update that only
applies when the row is still in an expected state, so concurrent requests,
webhook replays and sweeps can race without corrupting a booking.

Money-moving calls happen strictly after the state they depend on has been
committed: a cancellation is durable before its refund is attempted, and a
failed refund never reopens a cancelled booking.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from uuid import UUID

from app.config import Settings, settings as default_settings
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidBookingStatus,
    NotFoundError,
    PaymentReconciliationError,
    PayoutAccountNotReady,
    UpstreamError,
    ValidationError,
)
from app.core.idempotency import generate_idempotency_key
from app.domain.availability import AvailabilityCode, DENIAL_MESSAGES
from app.domain.booking_state import (
    AWAITING_PAYMENT_STATUSES,
    CANCELLED,
    CONFIRMED,
    EXPIRED,
    INACTIVE_STATUSES,
    PENDING,
    PENDING_PAYMENT,
    assert_booking_transition,
)
from app.domain.cancellation_policy import CancellationActor, is_refund_eligible
from app.domain.payment_state import (
    PAID,
    REFUND_FAILED,
    REFUND_MISSING_REFERENCE,
    REFUND_NONE,
    REFUND_REFUNDED,
    REFUND_REFUNDING,
    REFUND_REQUESTED,
    REFUNDED,
    UNPAID,
)
from app.gateways.base import CheckoutRequest, CheckoutResult
from app.models import Booking, Resource
from app.repositories.base import BookingRepository
from app.services.availability_service import AvailabilityService, validate_interval
from app.services.commission_service import CommissionService
from app.services.gateway_service import GatewayService

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = frozenset({PENDING, PENDING_PAYMENT, CONFIRMED})


@dataclass(frozen=True)
class CancellationResult:
    """Outcome of a cancellation request."""

    refunded: bool
    already_cancelled: bool
    refund_status: str


def _parse_amount(value: Decimal | int | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Total amount must be a number")
    if not amount.is_finite():
        raise ValidationError("Total amount must be a number")
    # Half a centime rounds up, matching to_minor_units
    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValidationError("Total amount must be positive")
    return amount


def _normalize_currency(currency: str) -> str:
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationError("Currency must be a 3-letter ISO code")
    return currency.upper()


def _booking_id_from_session(session: dict) -> UUID | None:
    metadata = session.get("metadata") or {}
    raw = metadata.get("booking_id") or metadata.get("bookingId") or session.get("client_reference_id")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


class BookingService:
    """Service for booking creation, payment and cancellation."""

    def __init__(
        self,
        repo: BookingRepository,
        gateway: GatewayService,
        settings: Settings | None = None,
        commission: CommissionService | None = None,
    ):
        self.repo = repo
        self.gateway = gateway
        self.settings = settings or default_settings
        self.commission = commission or CommissionService(
            self.settings.marketplace_commission_percent
        )
        self.availability = AvailabilityService(repo, self.settings)

    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.repo.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def _get_resource(self, resource_id: UUID) -> Resource:
        resource = await self.repo.get_resource(resource_id)
        if resource is None:
            raise NotFoundError("Resource", str(resource_id))
        return resource

    # Creation

    async def create(
        self,
        resource_id: UUID,
        renter_id: UUID,
        start_utc: datetime,
        end_utc: datetime,
        total_amount: Decimal | int | str,
        currency: str | None = None,
    ) -> Booking:
        """Create a pending booking if the interval is available.

        Raises:
            ValidationError: malformed interval, amount or currency
            NotFoundError: unknown resource
            ConflictError: availability denied, including a lost insert race
        """
        start_utc, end_utc = validate_interval(start_utc, end_utc)
        amount = _parse_amount(total_amount)
        currency = _normalize_currency(currency or self.settings.default_currency)

        resource = await self.availability.get_resource(resource_id)
        if resource.owner_id == renter_id:
            raise ValidationError("You cannot book your own parking space")

        decision = await self.availability.evaluate(resource, start_utc, end_utc)
        if not decision.available:
            raise ConflictError(decision.reason_code.value, decision.message)

        booking = Booking(
            id=uuid.uuid4(),
            resource_id=resource.id,
            renter_id=renter_id,
            start_utc=start_utc,
            end_utc=end_utc,
            status=PENDING,
            payment_status=UNPAID,
            refund_status=REFUND_NONE,
            total_amount=amount,
            currency=currency,
            created_at=datetime.now(UTC),
        )
        if not await self.repo.insert_booking_if_free(booking):
            code = AvailabilityCode.BOOKING_OVERLAP
            logger.info(f"Lost booking race on resource {resource.id}")
            raise ConflictError(code.value, DENIAL_MESSAGES[code])

        await self.repo.commit()
        logger.info(
            f"Booking {booking.id} created on resource {resource.id} "
            f"[{start_utc.isoformat()} - {end_utc.isoformat()})"
        )
        return booking

    async def get_booking(self, booking_id: UUID, user_id: UUID) -> Booking:
        """Read a booking as its renter or the resource owner."""
        booking = await self._get_booking(booking_id)
        if booking.renter_id == user_id:
            return booking
        resource = await self._get_resource(booking.resource_id)
        if resource.owner_id != user_id:
            raise AuthorizationError("Not allowed to view this booking")
        return booking

    # Payment

    async def initiate_payment(self, booking_id: UUID, user_id: UUID) -> CheckoutResult:
        """Open a hosted checkout session for a pending booking."""
        booking = await self._get_booking(booking_id)
        if booking.renter_id != user_id:
            raise AuthorizationError("Only the renter can pay for this booking")
        if booking.status not in AWAITING_PAYMENT_STATUSES or booking.payment_status != UNPAID:
            raise InvalidBookingStatus(
                f"Cannot pay for a booking in status {booking.status}/{booking.payment_status}"
            )
        assert_booking_transition(booking.status, PENDING_PAYMENT)

        resource = await self._get_resource(booking.resource_id)
        account = await self.repo.get_payout_account(resource.owner_id)
        if account is None or not account.is_onboarded:
            raise PayoutAccountNotReady()

        split = self.commission.calculate_split(
            booking.total_amount, booking.currency, resource.platform_fee_override
        )
        key = generate_idempotency_key(
            "checkout_create",
            booking.id,
            {
                "total": split.total_minor,
                "fee": split.platform_fee_minor,
                "currency": split.processor_currency,
                "destination": account.stripe_account_id,
            },
        )
        base_url = self.settings.app_base_url.rstrip("/")
        result = await self.gateway.create_checkout_session(
            CheckoutRequest(
                booking_id=str(booking.id),
                amount_minor=split.total_minor,
                currency=split.processor_currency,
                application_fee_minor=split.platform_fee_minor,
                destination_account=account.stripe_account_id,
                description=f"Parking reservation: {resource.title}",
                success_url=(
                    f"{base_url}/payment/success?bookingId={booking.id}"
                    "&session_id={CHECKOUT_SESSION_ID}"
                ),
                cancel_url=f"{base_url}/payment/cancel?bookingId={booking.id}",
                idempotency_key=key,
                metadata={"resource_id": str(resource.id), "renter_id": str(booking.renter_id)},
            )
        )
        if not result.success:
            raise UpstreamError("payment_processor", result.error_message)

        updated = await self.repo.transition_booking(
            booking.id,
            guards={"status": AWAITING_PAYMENT_STATUSES, "payment_status": [UNPAID]},
            values={
                "status": PENDING_PAYMENT,
                "payment_session_ref": result.session_id,
                "platform_fee_minor": split.platform_fee_minor,
                "owner_payout_minor": split.owner_payout_minor,
            },
        )
        if updated is None:
            raise InvalidBookingStatus("Booking changed while the payment was being prepared")

        await self.repo.commit()
        logger.info(
            f"Checkout session {result.session_id} opened for booking {booking.id} "
            f"(fee={split.platform_fee_minor}, payout={split.owner_payout_minor} {split.currency})"
        )
        return result

    async def complete_payment(self, session: dict) -> Booking | None:
        """Confirm the booking paid by a completed checkout session.

        Safe to replay: a confirmed booking is left untouched. Returns the
        booking, or ``None`` when the session does not reference a known one.
        """
        booking_id = _booking_id_from_session(session)
        if booking_id is None:
            logger.warning(f"Checkout session {session.get('id')} carries no booking reference")
            return None

        booking = await self.repo.get_booking(booking_id)
        if booking is None:
            logger.warning(f"Checkout session {session.get('id')} references unknown booking {booking_id}")
            return None

        if booking.status == CONFIRMED and booking.payment_status == PAID:
            logger.info(f"Booking {booking.id} already confirmed, ignoring replay")
            return booking

        payment_ref = session.get("payment_intent")
        updated = await self.repo.transition_booking(
            booking.id,
            guards={"status": AWAITING_PAYMENT_STATUSES, "payment_status": [UNPAID]},
            values={
                "status": CONFIRMED,
                "payment_status": PAID,
                "payment_charge_ref": payment_ref,
                "payment_session_ref": session.get("id") or booking.payment_session_ref,
                "confirmed_at": datetime.now(UTC),
            },
        )
        if updated is not None:
            await self.repo.commit()
            logger.info(f"Booking {booking.id} confirmed (payment {payment_ref})")
            return updated

        return await self._record_orphan_payment(booking, payment_ref)

    async def _record_orphan_payment(self, booking: Booking, payment_ref: str | None) -> Booking:
        """Money arrived for a booking that no longer holds its interval."""
        if booking.status not in INACTIVE_STATUSES or booking.payment_status != UNPAID:
            return booking

        updated = await self.repo.transition_booking(
            booking.id,
            guards={
                "status": INACTIVE_STATUSES,
                "payment_status": [UNPAID],
                "refund_status": [REFUND_NONE],
            },
            values={
                "payment_status": PAID,
                "payment_charge_ref": payment_ref,
                "refund_status": REFUND_REQUESTED,
            },
        )
        if updated is None:
            return booking

        await self.repo.commit()
        logger.error(
            str(
                PaymentReconciliationError(
                    str(booking.id),
                    f"payment {payment_ref} captured on {booking.status} booking, refund queued",
                )
            )
        )
        return updated

    async def expire_payment_session(self, session: dict) -> bool:
        """Expire a booking whose checkout session lapsed without payment."""
        booking_id = _booking_id_from_session(session)
        if booking_id is None:
            return False

        guards: dict = {"status": [PENDING_PAYMENT], "payment_status": [UNPAID]}
        if session.get("id"):
            guards["payment_session_ref"] = [session["id"]]

        updated = await self.repo.transition_booking(booking_id, guards=guards, values={"status": EXPIRED})
        if updated is None:
            return False

        await self.repo.commit()
        logger.info(f"Booking {booking_id} expired with its checkout session")
        return True

    async def expire_stale(self, now: datetime | None = None) -> list[UUID]:
        """Release unpaid pending bookings older than the payment timeout."""
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(minutes=self.settings.pending_payment_timeout_minutes)
        expired = await self.repo.expire_stale(cutoff)
        await self.repo.commit()
        if expired:
            logger.info(f"Expired {len(expired)} unpaid bookings created before {cutoff.isoformat()}")
        return expired

    # Cancellation

    async def cancel(
        self,
        booking_id: UUID,
        actor: CancellationActor,
        user_id: UUID,
        now: datetime | None = None,
    ) -> CancellationResult:
        """Cancel a booking and refund it when the cancellation policy allows."""
        booking = await self._get_booking(booking_id)
        await self._authorize_cancellation(booking, actor, user_id)

        if booking.status == CANCELLED:
            return CancellationResult(
                refunded=False, already_cancelled=True, refund_status=booking.refund_status
            )
        if booking.status not in CANCELLABLE_STATUSES:
            raise InvalidBookingStatus(f"Cannot cancel a booking in status {booking.status}")

        eligible = is_refund_eligible(
            booking.payment_status, booking.start_utc, self.settings.refund_cutoff_hours, now
        )
        cancelled = await self.repo.transition_booking(
            booking.id,
            guards={"status": CANCELLABLE_STATUSES, "payment_status": [booking.payment_status]},
            values={
                "status": CANCELLED,
                "cancelled_by": actor.value,
                "cancelled_at": now or datetime.now(UTC),
                "refund_status": REFUND_REQUESTED if eligible else REFUND_NONE,
            },
        )
        if cancelled is None:
            current = await self._get_booking(booking.id)
            if current.status == CANCELLED:
                return CancellationResult(
                    refunded=False, already_cancelled=True, refund_status=current.refund_status
                )
            raise InvalidBookingStatus("Booking changed while it was being cancelled")

        # Cancellation must be durable before any money moves.
        await self.repo.commit()
        logger.info(
            f"Booking {booking.id} cancelled by {actor.value} (refund eligible: {eligible})"
        )

        if not eligible:
            return CancellationResult(refunded=False, already_cancelled=False, refund_status=REFUND_NONE)

        refund_status = await self._refund(cancelled)
        return CancellationResult(
            refunded=refund_status == REFUND_REFUNDED,
            already_cancelled=False,
            refund_status=refund_status,
        )

    async def _authorize_cancellation(
        self, booking: Booking, actor: CancellationActor, user_id: UUID
    ) -> None:
        if actor == CancellationActor.RENTER:
            if booking.renter_id != user_id:
                raise AuthorizationError("Only the renter can cancel this booking")
            return

        resource = await self._get_resource(booking.resource_id)
        if resource.owner_id != user_id:
            raise AuthorizationError("Only the owner can cancel this booking")

    async def _refund(self, booking: Booking) -> str:
        """Refund a cancelled paid booking whose refund is requested or failed.

        Returns the refund status the booking was left in.
        """
        if not booking.payment_charge_ref:
            await self.repo.transition_booking(
                booking.id,
                guards={"refund_status": [REFUND_REQUESTED]},
                values={"refund_status": REFUND_MISSING_REFERENCE},
            )
            await self.repo.commit()
            logger.error(
                str(PaymentReconciliationError(str(booking.id), "refund owed but no payment reference"))
            )
            return REFUND_MISSING_REFERENCE

        claimed = await self.repo.transition_booking(
            booking.id,
            guards={"refund_status": [REFUND_REQUESTED, REFUND_FAILED], "payment_status": [PAID]},
            values={"refund_status": REFUND_REFUNDING},
        )
        if claimed is None:
            logger.info(f"Refund for booking {booking.id} already claimed elsewhere")
            return booking.refund_status
        await self.repo.commit()

        key = generate_idempotency_key(
            "refund_create", booking.id, {"actor": booking.cancelled_by or "system"}
        )
        try:
            result = await self.gateway.process_refund(
                payment_ref=booking.payment_charge_ref,
                idempotency_key=key,
                reason=f"Booking {booking.id} cancelled by {booking.cancelled_by or 'system'}",
            )
            success, refund_ref, error = result.success, result.refund_id, result.error_message
        except Exception as e:
            logger.exception(f"Refund call crashed for booking {booking.id}")
            success, refund_ref, error = False, None, str(e)

        if success:
            await self.repo.transition_booking(
                booking.id,
                guards={"refund_status": [REFUND_REFUNDING]},
                values={
                    "refund_status": REFUND_REFUNDED,
                    "payment_status": REFUNDED,
                    "refund_ref": refund_ref,
                },
            )
            await self.repo.commit()
            logger.info(f"Booking {booking.id} refunded ({refund_ref})")
            return REFUND_REFUNDED

        await self.repo.transition_booking(
            booking.id,
            guards={"refund_status": [REFUND_REFUNDING]},
            values={"refund_status": REFUND_FAILED},
        )
        await self.repo.commit()
        logger.error(str(PaymentReconciliationError(str(booking.id), f"refund failed: {error}")))
        return REFUND_FAILED

    async def retry_refunds(self, now: datetime | None = None) -> int:
        """Re-attempt refunds left requested or failed. Returns how many succeeded.

        A declined refund stays ``failed`` and is picked up again by every
        sweep; with its unchanged idempotency key the processor answers with
        the cached decline for about a day before trying it anew.
        """
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(minutes=self.settings.refund_retry_min_age_minutes)
        pending = await self.repo.list_refunds_to_retry(cutoff)

        refunded = 0
        for booking in pending:
            if await self._refund(booking) == REFUND_REFUNDED:
                refunded += 1

        if pending:
            logger.info(f"Refund retry sweep: {refunded}/{len(pending)} succeeded")
        return refunded
