"""Owner payout account endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import CurrentUserDep, get_payout_service
from app.schemas.payment import (
    OnboardingLinkResponse,
    PayoutAccountCreate,
    PayoutAccountResponse,
)
from app.services.payout_service import PayoutService

router = APIRouter()

PayoutServiceDep = Annotated[PayoutService, Depends(get_payout_service)]


@router.post("/account", response_model=PayoutAccountResponse)
async def create_payout_account(
    current_user: CurrentUserDep,
    service: PayoutServiceDep,
    data: PayoutAccountCreate | None = None,
) -> PayoutAccountResponse:
    """Open the caller's connected payout account.

    Calling it again returns the account already on file.
    """
    account = await service.create_account(current_user.id, data.email if data else None)
    return PayoutAccountResponse.model_validate(account)


@router.post("/account/onboarding", response_model=OnboardingLinkResponse)
async def create_onboarding_link(
    current_user: CurrentUserDep,
    service: PayoutServiceDep,
) -> OnboardingLinkResponse:
    url = await service.onboarding_link(current_user.id)
    return OnboardingLinkResponse(url=url)


@router.post("/account/refresh", response_model=PayoutAccountResponse)
async def refresh_payout_account(
    current_user: CurrentUserDep,
    service: PayoutServiceDep,
) -> PayoutAccountResponse:
    """Sync the caller's payout account onboarding flags from the processor."""
    account = await service.refresh_account(current_user.id)
    return PayoutAccountResponse.model_validate(account)
