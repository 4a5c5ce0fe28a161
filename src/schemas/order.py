"""Order Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.models.order import OrderStatus


class OrderItemSchema(BaseModel):
    """A line item as submitted by the storefront."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str = Field(..., min_length=1, description="Catalog product identifier")
    name: str = Field(..., min_length=1, description="Product name at time of order")
    price_usdc: float = Field(..., gt=0, description="Unit price in the stable asset")
    quantity: int = Field(..., ge=1, description="Quantity ordered")


class OrderCreateRequest(BaseModel):
    """Request schema for POST /orders."""

    customer_name: str = Field(..., min_length=1, max_length=255, description="Customer name")
    customer_email: EmailStr | None = Field(default=None, description="Optional customer email")
    items: list[OrderItemSchema] = Field(..., min_length=1, description="Line items, at least one")


class OrderCreateResponse(BaseModel):
    """Deposit instructions returned after an order is created."""

    order_id: str = Field(description="Created order ID")
    amount_usdc: float = Field(description="Amount to deposit in the stable asset")
    deposit_address: str = Field(description="Wallet address to deposit to")
    network: str = Field(description="Blockchain network of the deposit address")


class OrderResponse(BaseModel):
    """Response schema for order data."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Order ID")
    customer_name: str = Field(description="Customer name")
    customer_email: str | None = Field(default=None, description="Customer email")
    items: list[OrderItemSchema] = Field(description="Line items")
    amount_usdc: float = Field(description="Total in the stable asset")
    amount_cop: float | None = Field(default=None, description="Estimated fiat payout amount")
    status: OrderStatus = Field(description="Lifecycle status")
    payout_request_id: str | None = Field(default=None, description="Provider payout request ID")
    payout_status: str | None = Field(default=None, description="Provider payout status")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")


class OrderListResponse(BaseModel):
    """Response schema for listing orders."""

    orders: list[OrderResponse] = Field(description="Orders, newest first")
    total: int = Field(description="Number of orders")


class PayoutResponse(BaseModel):
    """Live payout request as reported by the provider."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Payout request ID")
    status: str = Field(description="Provider payout status")
    source_account_id: str | None = Field(default=None, description="Account the payout is funded from")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class OrderPayoutResponse(BaseModel):
    """Order together with its live payout record, if any."""

    order: OrderResponse = Field(description="Order after reconciliation")
    payout: PayoutResponse | None = Field(default=None, description="Live payout, null if unavailable")
