"""Mural Pay API client with retry logic and structured errors."""

import logging
import time
from typing import Any, Callable, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import Settings
from src.schemas.mural import (
    Account,
    CreatePayoutRequest,
    OrganizationSearchResponse,
    PayoutRequest,
    TokenAmount,
    TokenToFiatQuote,
    TransactionSearchResponse,
    Webhook,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api-staging.muralpay.com"

# Retry configuration for idempotent reads
MAX_RETRIES = 3
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 10

SLOW_CALL_THRESHOLD_MS = 2000

_accounts_adapter = TypeAdapter(list[Account])
_quotes_adapter = TypeAdapter(list[TokenToFiatQuote])
_webhooks_adapter = TypeAdapter(list[Webhook])

T = TypeVar("T")


class MuralError(Exception):
    """Base exception for Mural API failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class MuralTransportError(MuralError):
    """The request never produced an HTTP response (connect error, timeout)."""


class MuralServiceError(MuralError):
    """Structured error body returned by the Mural API."""

    def __init__(
        self,
        status_code: int,
        name: str,
        message: str,
        error_instance_id: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.error_instance_id = error_instance_id
        self.params = params or {}
        super().__init__(message, status_code=status_code)

    def __str__(self) -> str:
        return (
            f"mural error {self.name} ({self.error_instance_id}): "
            f"{self.message} params={self.params}"
        )


def _parse(validate: Callable[[Any], T], data: Any, what: str) -> T:
    """Validate a response body, raising MuralError when it does not fit the model."""
    try:
        return validate(data)
    except ValidationError as e:
        raise MuralError(f"decode {what}: {e}") from e


class MuralClient:
    """Typed async client for the subset of the Mural API this service uses.

    Every request carries the bearer API key and, when an organization is
    known, the on-behalf-of header. Reads are retried on transport errors;
    writes are sent once.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        transfer_key: str = "",
        organization_id: str = "",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Mural API key is required")

        self._api_key = api_key
        self._transfer_key = transfer_key
        self.organization_id = organization_id
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or DEFAULT_BASE_URL,
            timeout=timeout,
            transport=transport,
        )

    def with_organization(self, organization_id: str) -> "MuralClient":
        """Return a client scoped to an organization, sharing the HTTP pool."""
        return MuralClient(
            api_key=self._api_key,
            transfer_key=self._transfer_key,
            organization_id=organization_id,
            http_client=self._http,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    # Accounts and organizations

    async def get_accounts(self) -> list[Account]:
        """List the organization's accounts.

        Returns:
            list[Account]: Every account, in provider order.

        Raises:
            MuralError: If the call fails or the body does not parse.
        """
        data = await self._request("GET", "/api/accounts", retry=True)
        return _parse(_accounts_adapter.validate_python, data or [], "accounts")

    async def get_account(self, account_id: str) -> Account:
        """Get one account with its wallet details.

        Args:
            account_id: Mural account ID.

        Returns:
            Account: The account record.

        Raises:
            MuralError: If the call fails or the body does not parse.
        """
        data = await self._request("GET", f"/api/accounts/{account_id}", retry=True)
        return _parse(Account.model_validate, data, "account")

    async def search_organizations(self, name: str = "") -> OrganizationSearchResponse:
        """Search organizations visible to the API key.

        Args:
            name: Optional name filter. Empty returns every organization.

        Returns:
            OrganizationSearchResponse: First page of matching organizations.

        Raises:
            MuralError: If the call fails or the body does not parse.
        """
        body: dict[str, Any] = {}
        if name:
            body["name"] = name
        data = await self._request("POST", "/api/organizations/search", json=body, retry=True)
        return _parse(OrganizationSearchResponse.model_validate, data or {}, "organization search")

    # Transactions

    async def search_transactions(self, account_id: str, limit: int = 50) -> TransactionSearchResponse:
        """Search transactions for an account, first page only.

        Args:
            account_id: Settlement account ID.
            limit: Page size.

        Returns:
            TransactionSearchResponse: Transactions and the next-page cursor.

        Raises:
            MuralError: If the call fails or the body does not parse.
        """
        data = await self._request(
            "POST",
            f"/api/transactions/search/account/{account_id}",
            params={"limit": limit},
            json={},
            retry=True,
        )
        return _parse(TransactionSearchResponse.model_validate, data or {}, "transaction search")

    # Quotes and payouts

    async def quote_token_to_fiat(
        self, token_amount: float, token_symbol: str, fiat_and_rail_code: str
    ) -> list[TokenToFiatQuote]:
        """Estimate the fiat amount a token payout would deliver.

        Args:
            token_amount: Amount of the token to convert.
            token_symbol: Token symbol, e.g. USDC.
            fiat_and_rail_code: Target fiat rail, e.g. cop.

        Returns:
            list[TokenToFiatQuote]: One quote per fee request. May be empty.

        Raises:
            MuralError: If the call fails or the body does not parse.
        """
        body = {
            "tokenFeeRequests": [
                {
                    "amount": TokenAmount(
                        token_amount=token_amount, token_symbol=token_symbol
                    ).model_dump(by_alias=True),
                    "fiatAndRailCode": fiat_and_rail_code,
                }
            ]
        }
        data = await self._request("POST", "/api/payouts/fees/token-to-fiat", json=body)
        return _parse(_quotes_adapter.validate_python, data or [], "quote")

    async def create_payout_request(
        self, request: CreatePayoutRequest, idempotency_key: str | None = None
    ) -> PayoutRequest:
        """Create a payout request. It is not executed until execute is called.

        Args:
            request: Payout source, memo and recipients.
            idempotency_key: Sent as the idempotency-key header when set.

        Returns:
            PayoutRequest: The created request, usually AWAITING_EXECUTION.

        Raises:
            MuralError: If the call fails or the body does not parse.
        """
        headers = {"idempotency-key": idempotency_key} if idempotency_key else None
        data = await self._request(
            "POST",
            "/api/payouts/payout",
            json=request.model_dump(by_alias=True, exclude_none=True, mode="json"),
            headers=headers,
        )
        return _parse(PayoutRequest.model_validate, data, "payout request")

    async def execute_payout_request(
        self, payout_request_id: str, exchange_rate_tolerance_mode: str = ""
    ) -> PayoutRequest:
        """Execute a created payout request. Requires the transfer key.

        Args:
            payout_request_id: ID returned by create_payout_request.
            exchange_rate_tolerance_mode: e.g. FLEXIBLE. Omitted when empty.

        Returns:
            PayoutRequest: The request with its post-execution status.

        Raises:
            MuralError: If no transfer key is configured, the call fails or
                the body does not parse.
        """
        if not self._transfer_key:
            raise MuralError("Mural transfer key is required to execute payouts")
        body: dict[str, str] = {}
        if exchange_rate_tolerance_mode:
            body["exchangeRateToleranceMode"] = exchange_rate_tolerance_mode
        data = await self._request(
            "POST",
            f"/api/payouts/payout/{payout_request_id}/execute",
            json=body,
            headers={"transfer-api-key": self._transfer_key},
        )
        return _parse(PayoutRequest.model_validate, data, "payout request")

    async def get_payout_request(self, payout_request_id: str) -> PayoutRequest:
        """Get the live state of a payout request.

        Raises:
            MuralError: If the call fails or the body does not parse.
        """
        data = await self._request("GET", f"/api/payouts/payout/{payout_request_id}", retry=True)
        return _parse(PayoutRequest.model_validate, data, "payout request")

    # Webhooks

    async def list_webhooks(self) -> list[Webhook]:
        """List the organization's webhooks."""
        data = await self._request("GET", "/api/webhooks", retry=True)
        return _parse(_webhooks_adapter.validate_python, data or [], "webhooks")

    async def create_webhook(self, url: str, events: list[str]) -> Webhook:
        """Register a webhook. Mural creates it DISABLED.

        Args:
            url: Delivery URL.
            events: Event categories to subscribe to.

        Returns:
            Webhook: The created webhook.
        """
        data = await self._request("POST", "/api/webhooks", json={"url": url, "events": events})
        return _parse(Webhook.model_validate, data, "webhook")

    async def update_webhook_status(self, webhook_id: str, status: str) -> Webhook:
        """Set a webhook's status, e.g. ACTIVE or DISABLED."""
        data = await self._request(
            "PATCH", f"/api/webhooks/{webhook_id}/status", json={"status": status}
        )
        return _parse(Webhook.model_validate, data, "webhook")

    # Transport

    def _headers(self, extra: dict[str, str] | None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }
        if self.organization_id:
            headers["on-behalf-of"] = self.organization_id
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retry: bool = False,
    ) -> Any:
        """Send a request and decode the JSON response.

        Raises:
            MuralTransportError: If no response was received.
            MuralServiceError: If the API returned a structured error.
            MuralError: For any other non-2xx response or undecodable body.
        """
        request_headers = self._headers(headers)
        start_time = time.perf_counter()

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(MuralTransportError),
                stop=stop_after_attempt(MAX_RETRIES if retry else 1),
                wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
                reraise=True,
            ):
                with attempt:
                    response = await self._send(method, path, json, params, request_headers)
        finally:
            latency_ms = (time.perf_counter() - start_time) * 1000
            if latency_ms > SLOW_CALL_THRESHOLD_MS:
                logger.warning("Slow Mural call %s %s: %.2fms", method, path, latency_ms)
            else:
                logger.debug("Mural call %s %s: %.2fms", method, path, latency_ms)

        if not response.is_success:
            raise _error_from_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise MuralError(f"decode response: {e}", status_code=response.status_code) from e

    async def _send(
        self,
        method: str,
        path: str,
        json: Any,
        params: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> httpx.Response:
        try:
            return await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.TransportError as e:
            logger.warning("Mural %s %s transport error: %s", method, path, e)
            raise MuralTransportError(f"request failed: {e}") from e


def _error_from_response(response: httpx.Response) -> MuralError:
    """Build the most specific error available for a non-2xx response."""
    body = response.text
    try:
        payload = response.json() if body else None
    except ValueError:
        payload = None

    if isinstance(payload, dict) and payload.get("name"):
        return MuralServiceError(
            status_code=response.status_code,
            name=payload["name"],
            message=payload.get("message", ""),
            error_instance_id=payload.get("errorInstanceId"),
            params=payload.get("params"),
        )
    if not body:
        return MuralError(f"mural http {response.status_code} with empty body", response.status_code)
    return MuralError(f"mural http {response.status_code}: {body}", response.status_code)


def create_mural_client(settings: Settings) -> MuralClient | None:
    """Create a Mural client from settings.

    Returns:
        MuralClient | None: The client, or None when no API key is configured.
    """
    if not settings.mural_enabled:
        logger.warning("Mural API key not configured. Payment lifecycle will run in simulation mode.")
        return None
    return MuralClient(
        api_key=settings.mural_api_key,
        base_url=settings.mural_base_url,
        transfer_key=settings.mural_transfer_key,
        organization_id=settings.mural_organization_id,
        timeout=settings.mural_request_timeout_seconds,
    )


async def check_mural_connection(client: MuralClient | None, account_id: str) -> dict[str, Any]:
    """Check if the Mural API is reachable for the settlement account."""
    if client is None:
        # Simulation mode has no remote dependency
        return {"healthy": True}
    try:
        if account_id:
            await client.get_account(account_id)
        else:
            await client.get_accounts()
        return {"healthy": True}
    except MuralError as e:
        return {"healthy": False, "error": str(e)}
