"""Manual payment gateway adapter for local development."""

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


class ManualGateway(PaymentGateway):
    """Offline gateway used when no processor key is configured.

    Checkout points at the success page directly and no webhooks are ever
    delivered, so bookings stay pending until confirmed by hand. Refunds are
    settled by an admin.
    """

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        session_id = f"manual_{request.booking_id}"
        return CheckoutResult(
            success=True,
            session_id=session_id,
            checkout_url=request.success_url.replace("{CHECKOUT_SESSION_ID}", session_id),
            raw_response={"type": "manual", "status": "open"},
        )

    async def create_account(
        self,
        owner_id: str,
        email: str | None,
        idempotency_key: str,
    ) -> AccountResult:
        return AccountResult(success=True, account_id=f"manual_acct_{idempotency_key[:16]}")

    async def create_onboarding_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> OnboardingLinkResult:
        """There is no hosted flow; send the owner straight back."""
        return OnboardingLinkResult(success=True, url=return_url)

    async def retrieve_account(self, account_id: str) -> AccountResult:
        """Manual accounts are considered onboarded outside production."""
        onboarded = settings.environment != "production"
        return AccountResult(
            success=True,
            account_id=account_id,
            details_submitted=onboarded,
            charges_enabled=onboarded,
            payouts_enabled=onboarded,
        )

    async def process_refund(
        self,
        payment_ref: str,
        idempotency_key: str,
        reason: str,
    ) -> RefundResult:
        """Record a refund that an admin will settle by bank transfer."""
        return RefundResult(
            success=True,
            refund_id=f"refund_{idempotency_key[:16]}",
            raw_response={
                "type": "manual_refund",
                "status": "pending",
                "payment_ref": payment_ref,
                "reason": reason,
            },
        )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Manual gateway doesn't have webhooks."""
        return None
