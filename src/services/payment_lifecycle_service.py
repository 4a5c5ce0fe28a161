"""Payment lifecycle orchestration: deposit watch, quote, payout, reconciliation."""

import asyncio
import logging
import math
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from src.core.lifecycle_metrics import LifecycleMetrics, get_lifecycle_metrics
from src.core.mural import MuralClient, MuralError
from src.core.runtime import LifecycleConfig
from src.models.order import OrderStatus, is_terminal, parse_timestamp
from src.schemas.mural import (
    CreatePayoutRequest,
    PayoutInfo,
    PayoutRequest,
    TokenAmount,
    Transaction,
)
from src.services.order_store import OrderStore, OrderStoreError

logger = logging.getLogger(__name__)

# Provider payout request statuses
PAYOUT_AWAITING_EXECUTION = "AWAITING_EXECUTION"
PAYOUT_EXECUTED = "EXECUTED"
PAYOUT_FAILED = "FAILED"
PAYOUT_CANCELED = "CANCELED"

# Provider payout status -> order status for terminal outcomes
TERMINAL_PAYOUT_STATUSES: dict[str, OrderStatus] = {
    PAYOUT_EXECUTED: OrderStatus.WITHDRAWN,
    PAYOUT_FAILED: OrderStatus.PAYOUT_ERROR,
    PAYOUT_CANCELED: OrderStatus.PAYOUT_ERROR,
}


class DepositOutcome(str, Enum):
    """How the deposit watch for an order ended."""

    MATCHED = "matched"
    PAID_ELSEWHERE = "paid_elsewhere"
    ASSUMED = "assumed"
    UNCONFIRMED = "unconfirmed"


def find_matching_deposit(
    transactions: Iterable[Transaction],
    expected_amount: float,
    created_at: datetime | None,
    token_symbol: str,
    tolerance: float,
) -> Transaction | None:
    """Return the first transaction that can pay an order.

    Transactions executed before the order existed or in another token are
    skipped. Transactions without an execution time are not filtered on time.
    """
    for tx in transactions:
        if created_at is not None and tx.executed_at is not None and tx.executed_at < created_at:
            continue
        if tx.token_amount.token_symbol.lower() != token_symbol.lower():
            continue
        if math.isclose(tx.token_amount.token_amount, expected_amount, rel_tol=0.0, abs_tol=tolerance):
            return tx
    return None


class PaymentLifecycleService:
    """Drives one order from pending_payment to a payout.

    Each run is strictly sequential: watch for the deposit, quote the fiat
    amount, create and execute a single payout. Provider and persistence
    failures are logged and end the current step; the order keeps its last
    persisted status until a reconciliation read or a later run resolves it.
    """

    def __init__(
        self,
        config: LifecycleConfig,
        mural: MuralClient | None = None,
        store: OrderStore | None = None,
        metrics: LifecycleMetrics | None = None,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            config: Startup configuration snapshot.
            mural: Provider client. None runs the simulated lifecycle.
            store: Optional order store for testing.
            metrics: Optional metrics collector for testing.
        """
        self.config = config
        self.mural = mural
        self._store = store
        self.metrics = metrics or get_lifecycle_metrics()

    @property
    def store(self) -> OrderStore:
        """Get order store."""
        if self._store is None:
            self._store = OrderStore()
        return self._store

    async def run(self, order_id: str) -> None:
        """Run the full lifecycle for an order from its stored status."""
        order = await self._load(order_id)
        if order is None:
            logger.error("Cannot run payment lifecycle: order %s not loaded", order_id)
            return

        if is_terminal(order["status"]):
            logger.info("Order %s already %s; nothing to do", order_id, order["status"])
            return

        if self.mural is None:
            await self.simulate(order)
            return

        if order["status"] == OrderStatus.PENDING_PAYMENT:
            outcome = await self.watch_for_deposit(order)
            if outcome == DepositOutcome.UNCONFIRMED:
                return

        await self.sequence_payout(order_id, float(order["amount_usdc"]))

    async def simulate(self, order: dict[str, Any]) -> None:
        """Stand-in lifecycle used when no provider is configured.

        Produces the same status sequence as a live run with a synthetic
        conversion at the fallback rate.
        """
        order_id = order["id"]
        amount = float(order["amount_usdc"])
        cfg = self.config
        logger.info("Mural client not configured; simulating payment lifecycle for order %s", order_id)

        if order["status"] == OrderStatus.PENDING_PAYMENT:
            await asyncio.sleep(cfg.simulation_confirm_delay_seconds)
            await self._set_status(order_id, OrderStatus.PAID)

        await asyncio.sleep(cfg.simulation_quote_delay_seconds)
        estimate = self._fallback_estimate(amount)
        await self._set_status(order_id, OrderStatus.PAID, estimate)

        await asyncio.sleep(cfg.simulation_payout_delay_seconds)
        await self._set_status(order_id, OrderStatus.WITHDRAWN, estimate)

    async def watch_for_deposit(self, order: dict[str, Any]) -> DepositOutcome:
        """Poll the settlement account until a matching deposit arrives.

        Only the deadline ends the loop; search errors are logged and the
        next interval is tried.
        """
        order_id = order["id"]
        amount = float(order["amount_usdc"])
        created_at = parse_timestamp(order.get("created_at"))
        cfg = self.config

        loop = asyncio.get_running_loop()
        deadline = loop.time() + cfg.watch_timeout_seconds
        logger.info(
            "Waiting for %s deposit for order %s amount %.6f created_at=%s",
            cfg.stable_asset_symbol,
            order_id,
            amount,
            created_at.isoformat() if created_at else None,
        )

        while True:
            try:
                result = await self.mural.search_transactions(cfg.account_id, cfg.search_page_size)
            except MuralError as e:
                logger.warning("Transaction search failed while waiting on order %s: %s", order_id, e)
            else:
                logger.debug(
                    "Transaction search for order %s returned count=%d next_id=%s",
                    order_id,
                    result.count,
                    result.next_id,
                )
                match = find_matching_deposit(
                    result.transactions,
                    amount,
                    created_at,
                    cfg.stable_asset_symbol,
                    cfg.amount_tolerance,
                )
                if match is not None:
                    logger.info("Matched deposit %s for order %s; marking paid", match.id, order_id)
                    self.metrics.record("deposit_confirmed", order_id)
                    await self._set_status(order_id, OrderStatus.PAID)
                    return DepositOutcome.MATCHED

            current = await self._load(order_id)
            if current is not None and current["status"] != OrderStatus.PENDING_PAYMENT:
                logger.info(
                    "Order %s moved to %s while waiting for deposit; stopping watch",
                    order_id,
                    current["status"],
                )
                return DepositOutcome.PAID_ELSEWHERE

            if loop.time() >= deadline:
                return await self._handle_watch_timeout(order_id)

            await asyncio.sleep(cfg.poll_interval_seconds)

    async def _handle_watch_timeout(self, order_id: str) -> DepositOutcome:
        cfg = self.config
        if not cfg.assume_paid_on_timeout:
            logger.warning(
                "No %s deposit for order %s within %.0fs; leaving pending_payment",
                cfg.stable_asset_symbol,
                order_id,
                cfg.watch_timeout_seconds,
            )
            self.metrics.record("deposit_unconfirmed", order_id)
            return DepositOutcome.UNCONFIRMED

        logger.warning(
            "ASSUMED PAYMENT: no %s deposit for order %s within %.0fs; marking paid without confirmation",
            cfg.stable_asset_symbol,
            order_id,
            cfg.watch_timeout_seconds,
        )
        self.metrics.record("deposit_assumed", order_id)
        await self._set_status(order_id, OrderStatus.PAID)
        return DepositOutcome.ASSUMED

    async def sequence_payout(self, order_id: str, amount: float) -> None:
        """Quote, create and execute the single payout for a paid order."""
        current = await self._load(order_id)
        if current is None:
            logger.error("Cannot sequence payout: order %s not loaded", order_id)
            return
        if is_terminal(current["status"]):
            logger.info("Order %s already %s; skipping payout", order_id, current["status"])
            return

        payout_id = current.get("payout_request_id")
        if payout_id:
            # Never create a second payout for the same order
            await self._resume_payout(current, payout_id)
            return

        estimate = await self.quote_fiat_estimate(order_id, amount)
        await self._set_status(order_id, OrderStatus.PAID, estimate)

        payout = await self.create_payout(order_id, amount)
        if payout is None:
            return
        await self.execute_payout(order_id, payout.id)

    async def quote_fiat_estimate(self, order_id: str, amount: float) -> float:
        """Get the fiat estimate for an amount, falling back to the fixed rate."""
        cfg = self.config
        try:
            quotes = await self.mural.quote_token_to_fiat(amount, cfg.stable_asset_symbol, cfg.fiat_rail_code)
        except MuralError as e:
            logger.warning("Quote failed for order %s, using fallback rate: %s", order_id, e)
            self.metrics.record("quote_fallback", order_id)
            return self._fallback_estimate(amount)

        if not quotes:
            logger.warning("Quote for order %s returned no results, using fallback rate", order_id)
            self.metrics.record("quote_fallback", order_id)
            return self._fallback_estimate(amount)

        estimate = quotes[0].estimated_fiat_amount
        logger.info("Order %s quoted at %.2f %s", order_id, estimate.amount, estimate.currency_code)
        return estimate.amount

    def build_payout_request(self, order_id: str, amount: float) -> CreatePayoutRequest:
        """Build the payout of the full order amount to the fixed recipient."""
        cfg = self.config
        return CreatePayoutRequest(
            source_account_id=cfg.account_id,
            memo=f"Order {order_id}",
            payouts=[
                PayoutInfo(
                    amount=TokenAmount(token_amount=amount, token_symbol=cfg.stable_asset_symbol),
                    payout_details=cfg.recipient.payout_details(),
                    recipient_info=cfg.recipient.recipient_info(),
                )
            ],
        )

    async def create_payout(self, order_id: str, amount: float) -> PayoutRequest | None:
        """Create the payout request and record it before execution."""
        request = self.build_payout_request(order_id, amount)
        try:
            payout = await self.mural.create_payout_request(request, idempotency_key=order_id)
        except MuralError as e:
            logger.error("Create payout failed for order %s: %s", order_id, e)
            self.metrics.record("payout_create_failed", order_id)
            return None

        logger.info("Created payout %s (%s) for order %s", payout.id, payout.status, order_id)
        self.metrics.record("payout_created", order_id)
        await self._record_payout(order_id, payout)
        return payout

    async def execute_payout(self, order_id: str, payout_id: str) -> None:
        """Execute a created payout and mark the order withdrawn on success."""
        try:
            executed = await self.mural.execute_payout_request(payout_id, self.config.payout_tolerance_mode)
        except MuralError as e:
            logger.error("Execute payout %s failed for order %s: %s", payout_id, order_id, e)
            self.metrics.record("payout_execute_failed", order_id)
            return

        logger.info("Executed payout %s for order %s: %s", executed.id, order_id, executed.status)
        await self._record_payout(order_id, executed)

        if executed.status != PAYOUT_EXECUTED:
            return

        self.metrics.record("payout_executed", order_id)
        # Reload so the withdrawn record carries the latest persisted estimate
        order = await self._load(order_id)
        if order is None:
            logger.error("Failed to reload order %s after payout", order_id)
            return
        await self._set_status(order_id, OrderStatus.WITHDRAWN, order.get("amount_cop"))

    async def reconcile_payout(
        self, order_id: str
    ) -> tuple[dict[str, Any] | None, PayoutRequest | None]:
        """Refresh stored payout metadata from the live provider record.

        Retrieval failures never fail the read; the stored order is returned
        without a live payout.

        Returns:
            tuple: (order or None if not found, live payout or None).
        """
        order = await self.store.get(order_id)
        if order is None:
            return None, None

        payout_id = order.get("payout_request_id")
        if not payout_id or self.mural is None:
            return order, None

        try:
            payout = await self.mural.get_payout_request(payout_id)
        except MuralError as e:
            logger.warning("Failed to fetch payout %s for order %s: %s", payout_id, order_id, e)
            return order, None

        await self._record_payout(order_id, payout)
        await self._apply_terminal_payout_status(order_id, payout.status)

        refreshed = await self._load(order_id)
        return refreshed or order, payout

    async def _resume_payout(self, order: dict[str, Any], payout_id: str) -> None:
        order_id = order["id"]
        payout_status = (order.get("payout_status") or "").upper()

        if payout_status == PAYOUT_AWAITING_EXECUTION:
            logger.info("Order %s has unexecuted payout %s; executing it", order_id, payout_id)
            await self.execute_payout(order_id, payout_id)
        elif payout_status in TERMINAL_PAYOUT_STATUSES:
            await self._apply_terminal_payout_status(order_id, payout_status)
        else:
            logger.info(
                "Order %s already has payout %s in status %s; leaving for reconciliation",
                order_id,
                payout_id,
                payout_status or "unknown",
            )

    async def _apply_terminal_payout_status(self, order_id: str, payout_status: str) -> None:
        target = TERMINAL_PAYOUT_STATUSES.get(payout_status.upper())
        if target is None:
            return
        if target == OrderStatus.PAYOUT_ERROR:
            self.metrics.record("payout_failed", order_id)
        # None keeps the stored fiat estimate
        await self._set_status(order_id, target)

    async def _record_payout(self, order_id: str, payout: PayoutRequest) -> None:
        try:
            await self.store.update_payout_metadata(order_id, payout.id, payout.status)
        except OrderStoreError as e:
            logger.error("Failed to store payout metadata for order %s: %s", order_id, e)

    async def _set_status(
        self, order_id: str, status: OrderStatus, amount_cop: float | None = None
    ) -> bool:
        try:
            updated = await self.store.update_status(order_id, status, amount_cop)
        except OrderStoreError as e:
            logger.error("Failed to update order %s to %s: %s", order_id, status.value, e)
            return False
        if not updated:
            logger.warning("Order %s not moved to %s (missing or transition not allowed)", order_id, status.value)
        return updated

    async def _load(self, order_id: str) -> dict[str, Any] | None:
        try:
            return await self.store.get(order_id)
        except OrderStoreError as e:
            logger.error("Failed to load order %s: %s", order_id, e)
            return None

    def _fallback_estimate(self, amount: float) -> float:
        return round(amount * self.config.fallback_fiat_rate, 2)
