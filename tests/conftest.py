"""Pytest configuration and fixtures."""

import os
import uuid
from collections.abc import Generator
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("AUTH_JWT_SECRET", "test-auth-jwt-secret-with-enough-length")
os.environ["MURAL_API_KEY"] = ""
os.environ["MURAL_WEBHOOK_PUBLIC_KEY"] = ""
os.environ["USE_WEBHOOKS"] = "false"
os.environ["LIFECYCLE_RECOVER_ON_STARTUP"] = "false"

from src.core.config import get_settings  # noqa: E402
from src.core.runtime import LifecycleConfig  # noqa: E402
from src.models.order import OrderStatus, allowed_sources, compute_order_total  # noqa: E402


class InMemoryOrderStore:
    """Order store double that enforces the same conditional updates.

    Every accepted status write is appended to ``history`` so tests can
    assert on the exact status sequence of an order.
    """

    def __init__(self) -> None:
        self.orders: dict[str, dict[str, Any]] = {}
        self.history: list[tuple[str, str, float | None]] = []
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def add(
        self,
        amount_usdc: float = 10.0,
        status: OrderStatus = OrderStatus.PENDING_PAYMENT,
        created_at: datetime | None = None,
        **fields: Any,
    ) -> dict[str, Any]:
        """Insert an order directly, bypassing the total computation."""
        self._clock += timedelta(seconds=1)
        created = created_at or self._clock
        order = {
            "id": str(uuid.uuid4()),
            "customer_name": "Test Customer",
            "customer_email": None,
            "items": [
                {"product_id": "starter-kit", "name": "Starter Kit", "price_usdc": amount_usdc, "quantity": 1}
            ],
            "amount_usdc": amount_usdc,
            "amount_cop": None,
            "status": OrderStatus(status).value,
            "payout_request_id": None,
            "payout_status": None,
            "created_at": created.isoformat(),
            "updated_at": created.isoformat(),
        }
        order.update(fields)
        self.orders[order["id"]] = order
        return dict(order)

    async def create(
        self,
        customer_name: str,
        items: list[dict[str, Any]],
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        return self.add(
            amount_usdc=compute_order_total(items),
            customer_name=customer_name,
            customer_email=customer_email,
            items=items,
        )

    async def get(self, order_id: str) -> dict[str, Any] | None:
        order = self.orders.get(str(order_id))
        return dict(order) if order else None

    async def list_all(self) -> list[dict[str, Any]]:
        return [
            dict(o) for o in sorted(self.orders.values(), key=lambda o: o["created_at"], reverse=True)
        ]

    async def list_by_statuses(self, statuses: Iterable[OrderStatus]) -> list[dict[str, Any]]:
        wanted = {OrderStatus(s).value for s in statuses}
        return [
            dict(o)
            for o in sorted(self.orders.values(), key=lambda o: o["created_at"])
            if o["status"] in wanted
        ]

    async def update_status(
        self, order_id: str, status: OrderStatus, amount_cop: float | None = None
    ) -> bool:
        order = self.orders.get(str(order_id))
        status = OrderStatus(status)
        if order is None or order["status"] not in {s.value for s in allowed_sources(status)}:
            return False
        order["status"] = status.value
        if amount_cop is not None:
            order["amount_cop"] = amount_cop
        self.history.append((order["id"], status.value, amount_cop))
        return True

    async def update_payout_metadata(
        self, order_id: str, payout_request_id: str | None, payout_status: str
    ) -> bool:
        order = self.orders.get(str(order_id))
        if order is None:
            return False
        order["payout_status"] = payout_status
        if payout_request_id:
            order["payout_request_id"] = payout_request_id
        return True

    def statuses(self, order_id: str) -> list[str]:
        """Accepted status writes for an order, in order."""
        return [status for oid, status, _ in self.history if oid == order_id]


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    """Provide an empty in-memory order store."""
    return InMemoryOrderStore()


@pytest.fixture
def lifecycle_config(test_settings: Any) -> LifecycleConfig:
    """Provide a lifecycle configuration with fast timings."""
    config = LifecycleConfig.from_settings(
        test_settings,
        account_id="acct-123",
        organization_id="org-456",
        deposit_address="0xDEPOSIT",
        network="POLYGON",
    )
    return replace(
        config,
        poll_interval_seconds=0.01,
        watch_timeout_seconds=0.05,
        simulation_confirm_delay_seconds=0,
        simulation_quote_delay_seconds=0,
        simulation_payout_delay_seconds=0,
    )


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with (
        patch("src.core.supabase.get_supabase_client", return_value=mock_client),
        patch("src.services.order_store.get_supabase_client", return_value=mock_client),
    ):
        yield mock_client


@pytest.fixture
def client(
    mock_supabase_client: MagicMock, order_store: InMemoryOrderStore
) -> Generator[TestClient, None, None]:
    """Provide a test client backed by the in-memory order store.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.
        order_store: In-memory store injected into the routes.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app
    from src.services.order_store import get_order_store

    app.dependency_overrides[get_order_store] = lambda: order_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(test_settings: Any) -> dict[str, str]:
    """Authorization headers for the admin login."""
    from src.api.middleware.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token('admin', 'admin')}"}


@pytest.fixture
def guest_headers(test_settings: Any) -> dict[str, str]:
    """Authorization headers for the guest login."""
    from src.api.middleware.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token('guest', 'guest')}"}
