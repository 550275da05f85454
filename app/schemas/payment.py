"""Payment-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


class CheckoutResponse(BaseModel):
    """Schema for an opened checkout session."""

    checkout_url: str | None
    session_id: str | None


class PayoutAccountResponse(BaseModel):
    """Schema for an owner's payout account status."""

    model_config = ConfigDict(from_attributes=True)

    owner_id: UUID
    stripe_account_id: str | None
    details_submitted: bool
    charges_enabled: bool
    payouts_enabled: bool
    is_onboarded: bool


class WebhookAck(BaseModel):
    """Schema acknowledging a processor event."""

    received: bool = True
    duplicate: bool = False


class PayoutAccountCreate(BaseModel):
    """Schema for opening a payout account."""

    email: EmailStr | None = None


class OnboardingLinkResponse(BaseModel):
    """Schema for a hosted onboarding redirect."""

    url: str
