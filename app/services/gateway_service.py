"""Payment gateway service.

Routes payment operations to the configured gateway adapter.
No business logic here - only gateway coordination.
"""

import logging

from app.config import settings
from app.gateways.base import (
    AccountResult,
    CheckoutRequest,
    CheckoutResult,
    GatewayType,
    OnboardingLinkResult,
    PaymentGateway,
    RefundResult,
)
from app.gateways.manual import ManualGateway
from app.gateways.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def _is_production() -> bool:
    """Check if running in production environment."""
    return settings.environment == "production"


def _assert_key_allowed_for_environment(gateway_type: GatewayType) -> None:
    """Block live processor keys in non-production environments.

    Raises:
        RuntimeError: If a live Stripe key is configured outside production
    """
    if gateway_type != GatewayType.STRIPE or _is_production():
        return
    if settings.stripe_secret_key and not settings.stripe_secret_key.startswith("sk_test_"):
        raise RuntimeError(
            f"Cannot use a live Stripe key in {settings.environment} environment. "
            "Set ENVIRONMENT=production or use a test key."
        )


def default_gateway_type() -> GatewayType:
    return GatewayType.STRIPE if settings.stripe_secret_key else GatewayType.MANUAL


class GatewayService:
    """Service for managing payment gateway operations."""

    def __init__(self, gateway: PaymentGateway | None = None):
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        """Get or create the gateway instance."""
        if self._gateway is None:
            if default_gateway_type() == GatewayType.STRIPE:
                self._gateway = StripeGateway()
            else:
                logger.warning("Stripe is not configured, using the manual gateway")
                self._gateway = ManualGateway()
        return self._gateway

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        gateway = self.gateway
        # Environment safety: block live keys outside production
        _assert_key_allowed_for_environment(gateway.gateway_type)
        return await gateway.create_checkout_session(request)

    async def create_account(
        self,
        owner_id: str,
        email: str | None,
        idempotency_key: str,
    ) -> AccountResult:
        gateway = self.gateway
        _assert_key_allowed_for_environment(gateway.gateway_type)
        return await gateway.create_account(
            owner_id=owner_id,
            email=email,
            idempotency_key=idempotency_key,
        )

    async def create_onboarding_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> OnboardingLinkResult:
        return await self.gateway.create_onboarding_link(
            account_id=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
        )

    async def retrieve_account(self, account_id: str) -> AccountResult:
        return await self.gateway.retrieve_account(account_id)

    async def process_refund(
        self,
        payment_ref: str,
        idempotency_key: str,
        reason: str,
    ) -> RefundResult:
        gateway = self.gateway
        # Environment safety: block live keys outside production
        _assert_key_allowed_for_environment(gateway.gateway_type)
        return await gateway.process_refund(
            payment_ref=payment_ref,
            idempotency_key=idempotency_key,
            reason=reason,
        )

    def verify_webhook(self, payload: bytes, signature: str) -> dict | None:
        return self.gateway.verify_webhook(payload, signature)


# Singleton instance
gateway_service = GatewayService()
