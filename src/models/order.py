"""Order model type definitions and the order status state machine."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, TypedDict


class OrderStatus(str, Enum):
    """Order status values stored in the orders.status column."""

    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    WITHDRAWN = "withdrawn"
    PAYOUT_ERROR = "payout_error"


# Legal transitions. A write of the current status onto itself is always allowed
# so that fiat estimate updates on a paid order stay idempotent.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset(
        {OrderStatus.PAID, OrderStatus.WITHDRAWN, OrderStatus.PAYOUT_ERROR}
    ),
    OrderStatus.PAID: frozenset({OrderStatus.WITHDRAWN, OrderStatus.PAYOUT_ERROR}),
    OrderStatus.WITHDRAWN: frozenset(),
    OrderStatus.PAYOUT_ERROR: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)

AMOUNT_QUANTUM = Decimal("0.000001")


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    """Check whether an order in ``current`` may be moved to ``target``."""
    current = OrderStatus(current)
    target = OrderStatus(target)
    return current == target or target in ORDER_TRANSITIONS[current]


def allowed_sources(target: OrderStatus | str) -> list[OrderStatus]:
    """Return every status from which ``target`` can be written."""
    target = OrderStatus(target)
    return [status for status in OrderStatus if can_transition(status, target)]


def is_terminal(status: OrderStatus | str) -> bool:
    """Check if no further transitions exist for a status."""
    return OrderStatus(status) in TERMINAL_STATUSES


class OrderLineItem(TypedDict):
    """Structure for a single line item in an order.

    Stored as part of the items JSONB array.
    """

    product_id: str
    name: str
    price_usdc: float
    quantity: int


class Order(TypedDict):
    """Order table row representation."""

    id: str
    customer_name: str
    customer_email: str | None
    items: list[OrderLineItem]
    amount_usdc: float
    amount_cop: float | None
    status: str
    payout_request_id: str | None
    payout_status: str | None
    created_at: str
    updated_at: str


class OrderCreate(TypedDict, total=False):
    """Data required to create a new order."""

    customer_name: str
    customer_email: str | None
    items: list[OrderLineItem]
    amount_usdc: float
    status: str


def compute_order_total(items: Iterable[OrderLineItem]) -> float:
    """Sum price times quantity over line items, rounded to six decimals.

    Decimal arithmetic keeps prices like 6.5 x 3 exact before rounding.
    """
    total = sum(
        (Decimal(str(item["price_usdc"])) * item["quantity"] for item in items),
        Decimal("0"),
    )
    return float(total.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP))


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Parse a timestamp column value returned by the database."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)
