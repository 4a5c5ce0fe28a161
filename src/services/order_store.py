"""Order persistence backed by the Supabase orders table."""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from supabase import Client

from src.core.supabase import ORDERS_TABLE, get_supabase_client
from src.models.order import (
    OrderLineItem,
    OrderStatus,
    allowed_sources,
    compute_order_total,
)

logger = logging.getLogger(__name__)


class OrderStoreError(Exception):
    """Raised when the orders table cannot be read or written."""


class OrderStore:
    """Durable record of orders and their status.

    Status writes are conditional single-row updates: the row only changes
    when its current status may legally move to the requested one, so a
    stale writer can never move an order backwards.
    """

    def __init__(self, client: Client | None = None) -> None:
        """Initialize order store.

        Args:
            client: Optional Supabase client for testing.
        """
        self.client = client or get_supabase_client()

    async def create(
        self,
        customer_name: str,
        items: list[OrderLineItem],
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        """Insert a new pending order.

        The stable asset total is computed here from the line items and is
        never recomputed afterwards.

        Returns:
            dict: The created order including generated id and timestamps.
        """
        order_data = {
            "customer_name": customer_name,
            "customer_email": customer_email,
            "items": items,
            "amount_usdc": compute_order_total(items),
            "amount_cop": None,
            "status": OrderStatus.PENDING_PAYMENT.value,
        }
        response = self._execute(self.client.table(ORDERS_TABLE).insert(order_data))
        if not response.data:
            raise OrderStoreError("Order insert returned no row")
        order = response.data[0]
        logger.info("Created order %s for %.6f", order["id"], order_data["amount_usdc"])
        return order

    async def get(self, order_id: str) -> dict[str, Any] | None:
        """Get an order by ID.

        Returns:
            dict | None: The order data or None if not found.
        """
        response = self._execute(
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("id", str(order_id))
            .maybe_single()
        )
        return response.data if response and response.data else None

    async def list_all(self) -> list[dict[str, Any]]:
        """List all orders, newest first."""
        response = self._execute(
            self.client.table(ORDERS_TABLE).select("*").order("created_at", desc=True)
        )
        return response.data or []

    async def list_by_statuses(self, statuses: Iterable[OrderStatus]) -> list[dict[str, Any]]:
        """List orders in any of the given statuses, oldest first."""
        response = self._execute(
            self.client.table(ORDERS_TABLE)
            .select("*")
            .in_("status", [OrderStatus(s).value for s in statuses])
            .order("created_at")
        )
        return response.data or []

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        amount_cop: float | None = None,
    ) -> bool:
        """Move an order to a new status.

        Args:
            order_id: The order's UUID.
            status: Target status.
            amount_cop: New fiat estimate. None keeps the stored value.

        Returns:
            bool: True if the row was updated, False if the order is missing
            or its current status cannot move to ``status``.
        """
        status = OrderStatus(status)
        update_data: dict[str, Any] = {
            "status": status.value,
            "updated_at": _now(),
        }
        if amount_cop is not None:
            update_data["amount_cop"] = amount_cop

        response = self._execute(
            self.client.table(ORDERS_TABLE)
            .update(update_data)
            .eq("id", str(order_id))
            .in_("status", [s.value for s in allowed_sources(status)])
        )
        return bool(response.data)

    async def update_payout_metadata(
        self,
        order_id: str,
        payout_request_id: str | None,
        payout_status: str,
    ) -> bool:
        """Store the provider payout request ID and status.

        A missing payout request ID only updates the status; a stored ID is
        never cleared.
        """
        update_data: dict[str, Any] = {
            "payout_status": payout_status,
            "updated_at": _now(),
        }
        if payout_request_id:
            update_data["payout_request_id"] = payout_request_id

        response = self._execute(
            self.client.table(ORDERS_TABLE).update(update_data).eq("id", str(order_id))
        )
        return bool(response.data)

    @staticmethod
    def _execute(query: Any) -> Any:
        try:
            return query.execute()
        except Exception as e:
            raise OrderStoreError(str(e)) from e


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_order_store() -> OrderStore:
    """Create an order store over the shared Supabase client."""
    return OrderStore()
