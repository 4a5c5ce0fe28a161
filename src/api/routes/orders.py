"""Order API routes for the storefront."""

import logging
from uuid import UUID

from fastapi import APIRouter, status

from src.api.deps import Runtime, Store
from src.api.middleware.error_handler import NotFoundError, StorageError
from src.models.order import OrderLineItem
from src.schemas.order import OrderCreateRequest, OrderCreateResponse, OrderResponse
from src.services.lifecycle_worker import get_lifecycle_workers
from src.services.order_store import OrderStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
    description="Create a pending order and return deposit instructions.",
)
async def create_order(
    data: OrderCreateRequest,
    runtime: Runtime,
    store: Store,
) -> OrderCreateResponse:
    """Create an order and start its payment lifecycle.

    The total is computed from the line items at creation. The caller
    deposits that amount of the stable asset to the returned address.
    """
    items: list[OrderLineItem] = [item.model_dump() for item in data.items]
    try:
        order = await store.create(
            customer_name=data.customer_name,
            items=items,
            customer_email=data.customer_email,
        )
    except OrderStoreError as e:
        logger.error("Failed to create order: %s", e)
        raise StorageError("Could not create order") from e

    get_lifecycle_workers().enqueue(order["id"])

    return OrderCreateResponse(
        order_id=str(order["id"]),
        amount_usdc=float(order["amount_usdc"]),
        deposit_address=runtime.config.deposit_address,
        network=runtime.config.network,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    responses={404: {"description": "Order not found"}},
)
async def get_order(order_id: UUID, store: Store) -> OrderResponse:
    """Get an order with its current status. Polled by the storefront."""
    try:
        order = await store.get(str(order_id))
    except OrderStoreError as e:
        logger.error("Failed to load order %s: %s", order_id, e)
        raise StorageError("Could not load order") from e

    if order is None:
        raise NotFoundError("Order not found")
    return OrderResponse(**order)
