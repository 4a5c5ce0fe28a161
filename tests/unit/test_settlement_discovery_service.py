"""Unit tests for startup settlement discovery."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.mural import MuralError
from src.schemas.mural import (
    Account,
    AccountDetails,
    Organization,
    OrganizationSearchResponse,
    WalletDetails,
    Webhook,
)
from src.services.settlement_discovery_service import (
    MAX_WEBHOOKS,
    WEBHOOK_EVENTS,
    SettlementDiscoveryService,
    choose_account,
)


def account(
    account_id: str,
    name: str = "",
    api_enabled: bool = False,
    status: str = "ACTIVE",
    wallet: str = "",
) -> Account:
    details = None
    if wallet:
        details = AccountDetails(wallet_details=WalletDetails(wallet_address=wallet, blockchain="POLYGON"))
    return Account(id=account_id, name=name, is_api_enabled=api_enabled, status=status, account_details=details)


def settings(**overrides) -> MagicMock:
    values = {
        "mural_account_id": "",
        "mural_organization_id": "",
        "mural_account_name": "Main Account",
        "mural_webhook_public_key": "",
        "use_webhooks": False,
        "backend_base_url": "",
    }
    values.update(overrides)
    return MagicMock(**values)


def mural_client() -> MagicMock:
    client = MagicMock()
    client.get_accounts = AsyncMock(return_value=[])
    client.get_account = AsyncMock()
    client.search_organizations = AsyncMock(return_value=OrganizationSearchResponse())
    client.list_webhooks = AsyncMock(return_value=[])
    client.create_webhook = AsyncMock()
    client.update_webhook_status = AsyncMock()
    client.with_organization = MagicMock(return_value=client)
    return client


class TestChooseAccount:
    """Tests for settlement account preference order."""

    def test_prefers_named_account(self) -> None:
        accounts = [account("a", api_enabled=True), account("b", name="Main Account")]
        assert choose_account(accounts, "Main Account").id == "b"

    def test_falls_back_to_active_api_enabled(self) -> None:
        accounts = [account("a", status="INACTIVE", api_enabled=True), account("b", api_enabled=True)]
        assert choose_account(accounts, "Main Account").id == "b"

    def test_falls_back_to_first(self) -> None:
        accounts = [account("a"), account("b")]
        assert choose_account(accounts, "Main Account").id == "a"

    def test_empty(self) -> None:
        assert choose_account([], "Main Account") is None


class TestDiscover:
    """Tests for SettlementDiscoveryService.discover."""

    @pytest.mark.asyncio
    async def test_without_client_uses_configured_values(self, test_settings) -> None:
        runtime = await SettlementDiscoveryService(None, test_settings).discover()

        assert runtime.mural is None
        assert runtime.config.deposit_address == test_settings.mock_deposit_address
        assert runtime.config.network == test_settings.stable_asset_network

    @pytest.mark.asyncio
    async def test_resolves_account_wallet_and_organization(self, test_settings) -> None:
        client = mural_client()
        client.get_accounts.return_value = [account("acct-1", name="Main Account", wallet="0xWALLET")]
        client.search_organizations.return_value = OrganizationSearchResponse(
            organizations=[Organization(id="org-1", name="Org")]
        )
        service = SettlementDiscoveryService(client, test_settings)

        runtime = await service.discover()

        assert runtime.config.account_id == "acct-1"
        assert runtime.config.organization_id == "org-1"
        assert runtime.config.deposit_address == "0xWALLET"
        client.with_organization.assert_called_once_with("org-1")

    @pytest.mark.asyncio
    async def test_configured_account_id_is_fetched(self) -> None:
        client = mural_client()
        client.get_account.return_value = account("acct-9")
        service = SettlementDiscoveryService(client, settings(mural_account_id="acct-9"))

        resolved = await service.resolve_account()

        assert resolved.id == "acct-9"
        client.get_accounts.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_account_errors_do_not_abort_startup(self) -> None:
        client = mural_client()
        client.get_accounts.side_effect = MuralError("unauthorized", status_code=401)
        service = SettlementDiscoveryService(client, settings())

        assert await service.resolve_account() is None

    @pytest.mark.asyncio
    async def test_configured_organization_skips_search(self) -> None:
        client = mural_client()
        service = SettlementDiscoveryService(client, settings(mural_organization_id="org-7"))

        assert await service.resolve_organization() == "org-7"
        client.search_organizations.assert_not_awaited()


class TestEnsureWebhook:
    """Tests for webhook registration."""

    @pytest.mark.asyncio
    async def test_creates_and_activates_webhook(self) -> None:
        client = mural_client()
        client.create_webhook.return_value = Webhook(id="wh-1", url="x", status="DISABLED")
        client.update_webhook_status.return_value = Webhook(id="wh-1", url="x", status="ACTIVE")
        service = SettlementDiscoveryService(client, settings(use_webhooks=True, backend_base_url="https://shop.test/"))

        webhook = await service.ensure_webhook(client)

        client.create_webhook.assert_awaited_once_with("https://shop.test/api/v1/webhooks/mural", WEBHOOK_EVENTS)
        client.update_webhook_status.assert_awaited_once_with("wh-1", "ACTIVE")
        assert webhook.status == "ACTIVE"

    @pytest.mark.asyncio
    async def test_existing_active_webhook_is_reused(self) -> None:
        client = mural_client()
        url = "https://shop.test/api/v1/webhooks/mural"
        client.list_webhooks.return_value = [Webhook(id="wh-1", url=url, status="ACTIVE")]
        service = SettlementDiscoveryService(client, settings(backend_base_url="https://shop.test"))

        webhook = await service.ensure_webhook(client)

        assert webhook.id == "wh-1"
        client.create_webhook.assert_not_awaited()
        client.update_webhook_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_webhook_limit_respected(self) -> None:
        client = mural_client()
        client.list_webhooks.return_value = [
            Webhook(id=f"wh-{i}", url=f"https://other.test/{i}", status="ACTIVE") for i in range(MAX_WEBHOOKS)
        ]
        service = SettlementDiscoveryService(client, settings(backend_base_url="https://shop.test"))

        assert await service.ensure_webhook(client) is None
        client.create_webhook.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_base_url_skips_registration(self) -> None:
        client = mural_client()
        service = SettlementDiscoveryService(client, settings())

        assert await service.ensure_webhook(client) is None
        client.list_webhooks.assert_not_awaited()
