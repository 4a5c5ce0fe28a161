"""Startup discovery of the Mural account, organization and webhook."""

import logging

from src.core.config import Settings
from src.core.mural import MuralClient, MuralError
from src.core.runtime import LifecycleConfig, PaymentRuntime
from src.schemas.mural import Account, Webhook

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/v1/webhooks/mural"
WEBHOOK_EVENTS = ["MURAL_ACCOUNT_BALANCE_ACTIVITY"]
WEBHOOK_ACTIVE = "ACTIVE"
MAX_WEBHOOKS = 5


def choose_account(accounts: list[Account], preferred_name: str) -> Account | None:
    """Pick the settlement account.

    Prefers the account with the preferred name, then the first active
    API-enabled account, then the first account.
    """
    if not accounts:
        return None
    for account in accounts:
        if account.name == preferred_name:
            return account
    for account in accounts:
        if account.is_api_enabled and account.status.upper() == "ACTIVE":
            return account
    return accounts[0]


class SettlementDiscoveryService:
    """Resolves provider identifiers once and freezes them into a runtime."""

    def __init__(self, client: MuralClient | None, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    async def discover(self) -> PaymentRuntime:
        """Build the payment runtime, discovering what is not configured.

        Discovery failures are logged and leave the affected value empty;
        they never stop the application from starting.
        """
        settings = self.settings
        if self.client is None:
            return PaymentRuntime(config=LifecycleConfig.from_settings(settings), mural=None)

        account = await self.resolve_account()
        organization_id = await self.resolve_organization()
        client = self.client.with_organization(organization_id) if organization_id else self.client

        deposit_address = ""
        network = ""
        if account is not None:
            logger.info("Using Mural account %s (%s) for deposits and transactions", account.id, account.name)
            wallet = account.account_details.wallet_details if account.account_details else None
            if wallet is not None:
                deposit_address = wallet.wallet_address
                network = wallet.blockchain

        config = LifecycleConfig.from_settings(
            settings,
            account_id=account.id if account else "",
            organization_id=organization_id,
            deposit_address=deposit_address,
            network=network,
        )

        if settings.use_webhooks:
            await self.ensure_webhook(client)

        return PaymentRuntime(config=config, mural=client)

    async def resolve_account(self) -> Account | None:
        """Resolve the settlement account from configuration or the account list."""
        configured_id = self.settings.mural_account_id
        try:
            if configured_id:
                return await self.client.get_account(configured_id)
            accounts = await self.client.get_accounts()
        except MuralError as e:
            logger.error("Failed to resolve Mural account: %s", e)
            return None

        account = choose_account(accounts, self.settings.mural_account_name)
        if account is None:
            logger.warning("No Mural accounts returned for current API key")
        return account

    async def resolve_organization(self) -> str:
        """Resolve the on-behalf-of organization ID."""
        if self.settings.mural_organization_id:
            return self.settings.mural_organization_id
        try:
            result = await self.client.search_organizations()
        except MuralError as e:
            logger.error("Failed to search Mural organizations: %s", e)
            return ""
        if not result.organizations:
            logger.warning("No organizations returned from search; proceeding without on-behalf-of")
            return ""
        organization = result.organizations[0]
        logger.info("Using Mural organization %s (%s) for on-behalf-of", organization.id, organization.name)
        return organization.id

    async def ensure_webhook(self, client: MuralClient) -> Webhook | None:
        """Make sure an active balance activity webhook points at this backend."""
        base_url = self.settings.backend_base_url
        if not base_url:
            logger.warning("USE_WEBHOOKS is set but BACKEND_BASE_URL is not; webhooks not configured")
            return None
        callback_url = base_url.rstrip("/") + WEBHOOK_PATH

        try:
            webhooks = await client.list_webhooks()
            webhook = next((w for w in webhooks if w.url == callback_url), None)
            if webhook is None:
                if len(webhooks) >= MAX_WEBHOOKS:
                    logger.error("Cannot create Mural webhook: already at %d webhooks", MAX_WEBHOOKS)
                    return None
                webhook = await client.create_webhook(callback_url, WEBHOOK_EVENTS)
                logger.info("Created Mural webhook %s for %s", webhook.id, callback_url)
            if webhook.status != WEBHOOK_ACTIVE:
                webhook = await client.update_webhook_status(webhook.id, WEBHOOK_ACTIVE)
                logger.info("Activated Mural webhook %s", webhook.id)
        except MuralError as e:
            logger.error("Failed to configure Mural webhook: %s", e)
            return None

        if not self.settings.mural_webhook_public_key:
            logger.warning("Mural webhook %s active but MURAL_WEBHOOK_PUBLIC_KEY is empty; signatures will not be verified", webhook.id)
        return webhook
