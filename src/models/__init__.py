"""Database model type definitions."""

from src.models.order import Order, OrderCreate, OrderLineItem, OrderStatus

__all__ = [
    "Order",
    "OrderCreate",
    "OrderLineItem",
    "OrderStatus",
]
