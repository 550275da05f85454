"""Stripe payment gateway adapter (Checkout + Connect)."""

import asyncio
import json
import logging

import stripe

from app.config import settings
from app.core.retry import retry
from app.gateways.base import (
    AccountResult,
    CheckoutRequest,
    CheckoutResult,
    GatewayType,
    OnboardingLinkResult,
    PaymentGateway,
    RefundResult,
)

logger = logging.getLogger(__name__)

# Refunds on some payment methods settle asynchronously
ACCEPTED_REFUND_STATUSES = {"succeeded", "pending"}

ACCOUNT_COUNTRY = "CH"
ACCOUNT_PRODUCT_DESCRIPTION = "Private parking space rental between individuals"


class StripeGateway(PaymentGateway):
    """Stripe payment gateway implementation.

    The SDK is synchronous, so every call runs in a worker thread. Its own
    network retries are disabled: creation calls rely on idempotency keys and
    reads are retried explicitly.
    """

    def __init__(self):
        self.secret_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        stripe.api_key = self.secret_key
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.stripe_timeout_seconds
        )

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STRIPE

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        """Create a Stripe Checkout Session with a destination charge."""
        if not self.secret_key:
            return CheckoutResult(success=False, error_message="Stripe not configured")

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                mode="payment",
                line_items=[
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": request.currency,
                            "unit_amount": request.amount_minor,
                            "product_data": {"name": request.description},
                        },
                    }
                ],
                payment_intent_data={
                    "application_fee_amount": request.application_fee_minor,
                    "transfer_data": {"destination": request.destination_account},
                    "metadata": {"booking_id": request.booking_id},
                },
                client_reference_id=request.booking_id,
                metadata={"booking_id": request.booking_id, **request.metadata},
                success_url=request.success_url,
                cancel_url=request.cancel_url,
                idempotency_key=request.idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout creation failed for booking {request.booking_id}: {e}")
            return CheckoutResult(success=False, error_message=str(e))

        return CheckoutResult(
            success=True,
            session_id=session.id,
            checkout_url=session.url,
            raw_response={"id": session.id, "status": session.status},
        )

    async def create_account(
        self,
        owner_id: str,
        email: str | None,
        idempotency_key: str,
    ) -> AccountResult:
        """Create an Express account for an individual owner in Switzerland."""
        if not self.secret_key:
            return AccountResult(success=False, error_message="Stripe not configured")

        params = {
            "type": "express",
            "country": ACCOUNT_COUNTRY,
            "business_type": "individual",
            "business_profile": {
                "url": settings.app_base_url,
                "product_description": ACCOUNT_PRODUCT_DESCRIPTION,
            },
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "metadata": {"owner_id": owner_id},
        }
        if email:
            params["email"] = email

        try:
            account = await asyncio.to_thread(
                stripe.Account.create, idempotency_key=idempotency_key, **params
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe account creation failed for owner {owner_id}: {e}")
            return AccountResult(success=False, error_message=str(e))

        return AccountResult(
            success=True,
            account_id=account.id,
            details_submitted=bool(account.get("details_submitted")),
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
        )

    async def create_onboarding_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> OnboardingLinkResult:
        if not self.secret_key:
            return OnboardingLinkResult(success=False, error_message="Stripe not configured")

        try:
            link = await asyncio.to_thread(
                stripe.AccountLink.create,
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )
        except stripe.StripeError as e:
            logger.warning(f"Stripe onboarding link failed for {account_id}: {e}")
            return OnboardingLinkResult(success=False, error_message=str(e))

        return OnboardingLinkResult(success=True, url=link.url)

    async def retrieve_account(self, account_id: str) -> AccountResult:
        """Fetch Connect account onboarding flags."""
        if not self.secret_key:
            return AccountResult(success=False, error_message="Stripe not configured")

        @retry(
            max_attempts=settings.stripe_read_retry_attempts,
            retry_on=(stripe.APIConnectionError, stripe.RateLimitError),
        )
        async def _fetch():
            return await asyncio.to_thread(stripe.Account.retrieve, account_id)

        try:
            account = await _fetch()
        except stripe.StripeError as e:
            logger.warning(f"Stripe account lookup failed for {account_id}: {e}")
            return AccountResult(success=False, account_id=account_id, error_message=str(e))

        return AccountResult(
            success=True,
            account_id=account.id,
            details_submitted=bool(account.get("details_submitted")),
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
        )

    async def process_refund(
        self,
        payment_ref: str,
        idempotency_key: str,
        reason: str,
    ) -> RefundResult:
        """Refund a PaymentIntent in full."""
        if not self.secret_key:
            return RefundResult(success=False, error_message="Stripe not configured")

        try:
            refund = await asyncio.to_thread(
                stripe.Refund.create,
                payment_intent=payment_ref,
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            return RefundResult(success=False, error_message=str(e))

        return RefundResult(
            success=refund.status in ACCEPTED_REFUND_STATUSES,
            refund_id=refund.id,
            error_message=None
            if refund.status in ACCEPTED_REFUND_STATUSES
            else f"Refund status {refund.status}",
            raw_response={"status": refund.status, "id": refund.id},
        )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify Stripe webhook signature and return the plain event dict."""
        if not self.webhook_secret or not signature:
            return None

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning(f"Stripe webhook signature rejected: {e}")
            return None

        try:
            return json.loads(payload)
        except ValueError:
            return None
