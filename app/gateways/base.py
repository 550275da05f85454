"""Base payment gateway interface.

All gateway adapters must implement this interface.
Business logic should NOT live in adapters - only gateway communication.
Adapters report processor failures through result objects instead of raising.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class GatewayType(str, Enum):
    """Supported payment gateways."""

    STRIPE = "stripe"
    MANUAL = "manual"


@dataclass
class CheckoutRequest:
    """Everything needed to open a hosted checkout session."""

    booking_id: str
    amount_minor: int
    currency: str  # lower-case ISO code, as processors expect
    application_fee_minor: int
    destination_account: str
    description: str
    success_url: str
    cancel_url: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class CheckoutResult:
    """Result of a checkout session creation."""

    success: bool
    session_id: str | None = None
    checkout_url: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


@dataclass
class AccountResult:
    """Onboarding state of a connected payout account."""

    success: bool
    account_id: str | None = None
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    error_message: str | None = None


@dataclass
class OnboardingLinkResult:
    """Hosted onboarding link for a connected account."""

    success: bool
    url: str | None = None
    error_message: str | None = None


@dataclass
class RefundResult:
    """Result of a refund operation."""

    success: bool
    refund_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""
        pass

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        """Open a hosted checkout session routing the owner share to the destination.

        Args:
            request: Amounts, destination and idempotency key

        Returns:
            CheckoutResult with session id and redirect URL
        """
        pass

    @abstractmethod
    async def create_account(
        self,
        owner_id: str,
        email: str | None,
        idempotency_key: str,
    ) -> AccountResult:
        """Create a connected account able to receive transfers.

        Args:
            owner_id: Space owner the account pays out to
            email: Prefilled contact email, if known
            idempotency_key: Stable key so a repeated request creates one account

        Returns:
            AccountResult with the new account id and its (unset) flags
        """
        pass

    @abstractmethod
    async def create_onboarding_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> OnboardingLinkResult:
        """Create a one-time link to the hosted onboarding flow."""
        pass

    @abstractmethod
    async def retrieve_account(self, account_id: str) -> AccountResult:
        """Fetch the onboarding flags of a connected account."""
        pass

    @abstractmethod
    async def process_refund(
        self,
        payment_ref: str,
        idempotency_key: str,
        reason: str,
    ) -> RefundResult:
        """Refund a captured payment in full.

        Args:
            payment_ref: Processor reference of the captured charge
            idempotency_key: Stable key so a repeated request refunds once
            reason: Refund reason

        Returns:
            RefundResult with refund details
        """
        pass

    @abstractmethod
    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify webhook signature and parse payload.

        Args:
            payload: Raw request body
            signature: Webhook signature header

        Returns:
            Parsed event dict if valid, None if invalid
        """
        pass
