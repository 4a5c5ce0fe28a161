"""Mural webhook signature verification and credit event matching."""

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Mapping

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import ValidationError

from src.core.config import get_settings
from src.core.lifecycle_metrics import LifecycleMetrics, get_lifecycle_metrics
from src.core.runtime import LifecycleConfig
from src.models.order import OrderStatus
from src.schemas.mural import WebhookEvent
from src.services.order_store import OrderStore, OrderStoreError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-mural-webhook-signature"
SIGNATURE_VERSION_HEADER = "x-mural-webhook-signature-version"
TIMESTAMP_HEADER = "x-mural-webhook-timestamp"

BALANCE_ACTIVITY_CATEGORY = "MURAL_ACCOUNT_BALANCE_ACTIVITY"
ACCOUNT_CREDITED = "account_credited"


class WebhookAuthError(Exception):
    """Webhook request failed signature verification."""


class WebhookPayloadError(Exception):
    """Webhook body is not a valid event envelope."""


class WebhookConfigError(Exception):
    """Configured webhook public key cannot be used."""


class WebhookOutcome(str, Enum):
    MATCHED = "matched"
    IGNORED = "ignored"
    UNPERSISTED = "unpersisted"


@dataclass
class WebhookResult:
    """Result of processing one webhook delivery."""

    outcome: WebhookOutcome
    order_id: str | None = None
    reason: str | None = None


@lru_cache
def load_public_key(pem: str) -> ec.EllipticCurvePublicKey:
    """Parse a PEM encoded elliptic curve public key.

    Env files often carry the PEM on one line with literal ``\\n`` escapes.

    Raises:
        WebhookConfigError: If the key is not a valid EC public key.
    """
    normalized = pem.replace("\\n", "\n").strip()
    try:
        key = serialization.load_pem_public_key(normalized.encode())
    except (ValueError, UnsupportedAlgorithm) as e:
        raise WebhookConfigError(f"Invalid webhook public key: {e}") from e
    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise WebhookConfigError("Webhook public key is not an elliptic curve key")
    return key


def verify_signature(public_key_pem: str, body: bytes, headers: Mapping[str, str]) -> None:
    """Verify the ECDSA signature of a webhook delivery.

    The signed message is ``<timestamp>.<raw body>`` hashed with SHA-256.

    Raises:
        WebhookAuthError: If a header is missing or the signature is invalid.
        WebhookConfigError: If the configured key cannot be parsed.
    """
    signature_b64 = headers.get(SIGNATURE_HEADER)
    signature_version = headers.get(SIGNATURE_VERSION_HEADER)
    timestamp = headers.get(TIMESTAMP_HEADER)

    if not signature_b64 or not signature_version or not timestamp:
        raise WebhookAuthError("Missing webhook signature headers")

    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise WebhookAuthError("Invalid signature encoding") from e

    public_key = load_public_key(public_key_pem)
    message = timestamp.encode() + b"." + body
    try:
        public_key.verify(signature, message, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature as e:
        raise WebhookAuthError("Invalid webhook signature") from e


def parse_event(body: bytes) -> WebhookEvent:
    """Parse a webhook body into its event envelope.

    Raises:
        WebhookPayloadError: If the body is not valid JSON of the right shape.
    """
    try:
        return WebhookEvent.model_validate_json(body)
    except ValidationError as e:
        raise WebhookPayloadError(f"Invalid webhook body: {e.error_count()} errors") from e


def select_order_for_credit(
    orders_newest_first: list[dict[str, Any]], credited_amount: float
) -> dict[str, Any] | None:
    """Pick the order a credit most likely pays for.

    Scans newest to oldest and returns the first pending order whose amount
    does not exceed the credit. This is a heuristic: several orders may fit.
    """
    for order in orders_newest_first:
        if (
            order["status"] == OrderStatus.PENDING_PAYMENT
            and float(order["amount_usdc"]) <= credited_amount
        ):
            return order
    return None


class WebhookService:
    """Authenticates webhook deliveries and applies credit events to orders."""

    def __init__(
        self,
        config: LifecycleConfig,
        store: OrderStore | None = None,
        metrics: LifecycleMetrics | None = None,
        public_key_pem: str | None = None,
    ) -> None:
        """Initialize webhook service.

        Args:
            config: Startup configuration snapshot.
            store: Optional order store for testing.
            metrics: Optional metrics collector for testing.
            public_key_pem: Verification key. Defaults to the configured key.
        """
        self.config = config
        self._store = store
        self.metrics = metrics or get_lifecycle_metrics()
        self.public_key_pem = (
            public_key_pem
            if public_key_pem is not None
            else get_settings().mural_webhook_public_key
        )

    @property
    def store(self) -> OrderStore:
        """Get order store."""
        if self._store is None:
            self._store = OrderStore()
        return self._store

    def authenticate(self, body: bytes, headers: Mapping[str, str]) -> None:
        """Verify the delivery when a public key is configured."""
        if not self.public_key_pem:
            logger.warning("Webhook public key not configured; accepting unauthenticated webhook")
            return
        try:
            verify_signature(self.public_key_pem, body, headers)
        except WebhookAuthError as e:
            self.metrics.record("webhook_rejected")
            logger.warning("Rejected webhook: %s", e)
            raise

    async def handle(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        """Authenticate, parse and process a raw webhook delivery."""
        self.authenticate(body, headers)
        event = parse_event(body)
        return await self.process_event(event)

    async def process_event(self, event: WebhookEvent) -> WebhookResult:
        """Mark the best matching pending order paid for a credit event."""
        payload = event.payload
        cfg = self.config

        if event.event_category != BALANCE_ACTIVITY_CATEGORY:
            return self._ignore(f"category {event.event_category or 'missing'}")
        if payload.type != ACCOUNT_CREDITED:
            return self._ignore(f"payload type {payload.type or 'missing'}")
        if not payload.account_id:
            return self._ignore("empty account")
        if cfg.account_id and payload.account_id != cfg.account_id:
            return self._ignore(f"unrecognized account {payload.account_id}")
        if payload.token_amount.token_symbol.lower() != cfg.stable_asset_symbol.lower():
            return self._ignore(f"token {payload.token_amount.token_symbol or 'missing'}")

        try:
            orders = await self.store.list_all()
        except OrderStoreError as e:
            logger.error("Failed to list orders for webhook: %s", e)
            return self._ignore("orders unavailable")

        credited = payload.token_amount.token_amount
        order = select_order_for_credit(orders, credited)
        if order is None:
            return self._ignore(f"no pending order fits credit {credited:.6f}")

        order_id = order["id"]
        logger.info("Webhook credit %.6f matched order %s; marking paid", credited, order_id)
        try:
            updated = await self.store.update_status(order_id, OrderStatus.PAID)
        except OrderStoreError as e:
            logger.error("Failed to update order %s to paid from webhook: %s", order_id, e)
            updated = False
        if not updated:
            logger.warning("Webhook could not move order %s to paid", order_id)
            self.metrics.record("webhook_persist_failed", order_id)
            return WebhookResult(
                outcome=WebhookOutcome.UNPERSISTED, order_id=order_id, reason="paid update not applied"
            )

        self.metrics.record("webhook_matched", order_id)
        return WebhookResult(outcome=WebhookOutcome.MATCHED, order_id=order_id)

    def _ignore(self, reason: str) -> WebhookResult:
        logger.info("Ignoring webhook event: %s", reason)
        self.metrics.record("webhook_ignored")
        return WebhookResult(outcome=WebhookOutcome.IGNORED, reason=reason)
