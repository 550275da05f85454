"""Owner payout account onboarding and synchronisation."""

import logging
from uuid import UUID

from app.config import settings
from app.core.exceptions import NotFoundError, UpstreamError
from app.core.idempotency import generate_idempotency_key
from app.models import PayoutAccount
from app.repositories.base import BookingRepository
from app.services.gateway_service import GatewayService

logger = logging.getLogger(__name__)

PAYOUTS_PAGE = "/owner/payouts"


class PayoutService:
    """Creates connected accounts for owners and keeps their onboarding flags current."""

    def __init__(self, repo: BookingRepository, gateway: GatewayService):
        self.repo = repo
        self.gateway = gateway

    async def create_account(self, owner_id: UUID, email: str | None = None) -> PayoutAccount:
        """Create the owner's connected account, or return the one already on file.

        Raises:
            UpstreamError: If the processor refuses the account
        """
        account = await self.repo.get_payout_account(owner_id)
        if account is not None and account.stripe_account_id:
            return account

        result = await self.gateway.create_account(
            owner_id=str(owner_id),
            email=email,
            idempotency_key=generate_idempotency_key("account_create", owner_id),
        )
        if not result.success or not result.account_id:
            raise UpstreamError("payment_processor", result.error_message)

        if account is None:
            account = PayoutAccount(owner_id=owner_id)
        account.stripe_account_id = result.account_id
        # Flags stay unset until the owner finishes onboarding and refreshes
        account.details_submitted = False
        account.charges_enabled = False
        account.payouts_enabled = False
        account = await self.repo.save_payout_account(account)
        await self.repo.commit()

        logger.info(f"Payout account {result.account_id} created for owner {owner_id}")
        return account

    async def onboarding_link(self, owner_id: UUID) -> str:
        """Hosted onboarding URL for the owner's existing account."""
        account = await self.repo.get_payout_account(owner_id)
        if account is None or not account.stripe_account_id:
            raise NotFoundError("Payout account")

        base_url = settings.app_base_url.rstrip("/")
        result = await self.gateway.create_onboarding_link(
            account_id=account.stripe_account_id,
            refresh_url=f"{base_url}{PAYOUTS_PAGE}?refresh=1",
            return_url=f"{base_url}{PAYOUTS_PAGE}?return=1",
        )
        if not result.success or not result.url:
            raise UpstreamError("payment_processor", result.error_message)
        return result.url

    async def refresh_account(self, owner_id: UUID) -> PayoutAccount:
        account = await self.repo.get_payout_account(owner_id)
        if account is None or not account.stripe_account_id:
            raise NotFoundError("Payout account")

        result = await self.gateway.retrieve_account(account.stripe_account_id)
        if not result.success:
            raise UpstreamError("payment_processor", result.error_message)

        account.details_submitted = result.details_submitted
        account.charges_enabled = result.charges_enabled
        account.payouts_enabled = result.payouts_enabled
        account = await self.repo.save_payout_account(account)
        await self.repo.commit()

        logger.info(
            f"Payout account {account.stripe_account_id} of owner {owner_id} refreshed "
            f"(onboarded: {account.is_onboarded})"
        )
        return account
