"""Admin API routes for order oversight and provider state."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter

from src.api.deps import AdminUser, LifecycleService, Runtime, Store
from src.api.middleware.error_handler import (
    NotFoundError,
    ServiceUnavailableError,
    StorageError,
    UpstreamError,
)
from src.api.middleware.latency_logging import get_latency_stats
from src.core.lifecycle_metrics import get_lifecycle_metrics
from src.core.mural import MuralError
from src.schemas.mural import Account
from src.schemas.order import OrderListResponse, OrderPayoutResponse, OrderResponse, PayoutResponse
from src.services.order_store import OrderStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/orders", response_model=OrderListResponse, summary="List orders")
async def list_orders(user: AdminUser, store: Store) -> OrderListResponse:
    """List every order, newest first."""
    try:
        orders = await store.list_all()
    except OrderStoreError as e:
        logger.error("Failed to list orders: %s", e)
        raise StorageError("Could not list orders") from e

    return OrderListResponse(
        orders=[OrderResponse(**order) for order in orders],
        total=len(orders),
    )


@router.get(
    "/orders/{order_id}/payout",
    response_model=OrderPayoutResponse,
    summary="Reconcile order payout",
    responses={404: {"description": "Order not found"}},
)
async def get_order_payout(
    order_id: UUID,
    user: AdminUser,
    service: LifecycleService,
) -> OrderPayoutResponse:
    """Return an order with its live payout record.

    Reading the live record also refreshes the stored payout status and
    moves the order to a terminal status when the payout has finished.
    Provider failures degrade to a null payout rather than an error.
    """
    try:
        order, payout = await service.reconcile_payout(str(order_id))
    except OrderStoreError as e:
        logger.error("Failed to load order %s for reconciliation: %s", order_id, e)
        raise StorageError("Could not load order") from e

    if order is None:
        raise NotFoundError("Order not found")

    return OrderPayoutResponse(
        order=OrderResponse(**order),
        payout=PayoutResponse.model_validate(payout) if payout is not None else None,
    )


@router.get("/mural/account", summary="Settlement account")
async def get_mural_account(user: AdminUser, runtime: Runtime) -> dict[str, Any]:
    """Return the live settlement account record from the provider."""
    if runtime.mural is None or not runtime.config.account_id:
        raise ServiceUnavailableError("Mural integration is not configured")

    try:
        account: Account = await runtime.mural.get_account(runtime.config.account_id)
    except MuralError as e:
        raise UpstreamError(
            "Failed to fetch Mural account",
            upstream_status=e.status_code,
        ) from e

    return account.model_dump(mode="json", by_alias=True)


@router.get("/metrics", summary="Lifecycle metrics")
async def get_metrics(user: AdminUser) -> dict[str, Any]:
    """Return lifecycle counters, recent events and request latency stats."""
    stats = get_lifecycle_metrics().get_stats()
    stats["http"] = get_latency_stats().get_stats()
    return stats
