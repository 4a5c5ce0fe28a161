"""Integration tests for admin endpoints."""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.deps import get_runtime
from src.core.lifecycle_metrics import get_lifecycle_metrics
from src.core.mural import MuralError
from src.core.runtime import PaymentRuntime
from src.schemas.mural import Account, PayoutRequest


@pytest.fixture
def mock_mural() -> MagicMock:
    mural = MagicMock()
    mural.get_account = AsyncMock()
    mural.get_payout_request = AsyncMock()
    return mural


@pytest.fixture
def live_runtime(
    client: TestClient, lifecycle_config, mock_mural: MagicMock
) -> Generator[PaymentRuntime, None, None]:
    """Serve admin requests from a runtime with a Mural client attached."""
    from src.main import app

    runtime = PaymentRuntime(config=lifecycle_config, mural=mock_mural)
    app.dependency_overrides[get_runtime] = lambda: runtime
    yield runtime
    app.dependency_overrides.pop(get_runtime, None)


class TestAdminAuthorization:
    """Tests for admin-only access."""

    @pytest.mark.parametrize(
        "path",
        [
            "/api/v1/admin/orders",
            "/api/v1/admin/metrics",
            "/api/v1/admin/mural/account",
        ],
    )
    def test_requires_token(self, client: TestClient, path: str) -> None:
        """Test that admin routes return 401 without a token."""
        assert client.get(path).status_code == 401

    def test_guest_is_forbidden(self, client: TestClient, guest_headers: dict[str, str]) -> None:
        """Test that a guest token cannot read admin routes."""
        response = client.get("/api/v1/admin/orders", headers=guest_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin role required"


class TestListOrders:
    """Tests for GET /api/v1/admin/orders."""

    def test_lists_orders_newest_first(
        self, client: TestClient, order_store, admin_headers: dict[str, str]
    ) -> None:
        """Test that every order is returned, newest first."""
        first = order_store.add(amount_usdc=1.0)
        second = order_store.add(amount_usdc=2.0, status="withdrawn", amount_cop=8000.0)

        response = client.get("/api/v1/admin/orders", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [o["id"] for o in data["orders"]] == [second["id"], first["id"]]
        assert data["orders"][0]["amount_cop"] == 8000.0

    def test_empty(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        """Test that an empty store returns an empty list."""
        response = client.get("/api/v1/admin/orders", headers=admin_headers)

        assert response.json() == {"orders": [], "total": 0}


class TestOrderPayout:
    """Tests for GET /api/v1/admin/orders/{order_id}/payout."""

    def test_unknown_order_returns_404(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        """Test that reconciling a missing order returns 404."""
        response = client.get(
            "/api/v1/admin/orders/00000000-0000-0000-0000-000000000000/payout",
            headers=admin_headers,
        )

        assert response.status_code == 404

    def test_order_without_payout(
        self, client: TestClient, order_store, admin_headers: dict[str, str]
    ) -> None:
        """Test that an order with no payout yet returns a null payout."""
        order = order_store.add(status="paid")

        response = client.get(f"/api/v1/admin/orders/{order['id']}/payout", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["order"]["status"] == "paid"
        assert data["payout"] is None

    def test_executed_payout_moves_order_to_withdrawn(
        self,
        client: TestClient,
        order_store,
        admin_headers: dict[str, str],
        live_runtime: PaymentRuntime,
        mock_mural: MagicMock,
    ) -> None:
        """Test that reading an executed payout reconciles the order."""
        order = order_store.add(
            status="paid",
            amount_cop=20000.0,
            payout_request_id="payout-1",
            payout_status="PENDING",
        )
        mock_mural.get_payout_request.return_value = PayoutRequest(
            id="payout-1", status="EXECUTED", source_account_id="acct-123"
        )

        response = client.get(f"/api/v1/admin/orders/{order['id']}/payout", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["order"]["status"] == "withdrawn"
        assert data["order"]["payout_status"] == "EXECUTED"
        assert data["order"]["amount_cop"] == 20000.0
        assert data["payout"]["id"] == "payout-1"
        assert data["payout"]["status"] == "EXECUTED"

    def test_provider_failure_returns_stored_order(
        self,
        client: TestClient,
        order_store,
        admin_headers: dict[str, str],
        live_runtime: PaymentRuntime,
        mock_mural: MagicMock,
    ) -> None:
        """Test that a provider error degrades to a null payout."""
        order = order_store.add(status="paid", payout_request_id="payout-1")
        mock_mural.get_payout_request.side_effect = MuralError("down", status_code=503)

        response = client.get(f"/api/v1/admin/orders/{order['id']}/payout", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["order"]["status"] == "paid"
        assert data["payout"] is None


class TestMuralAccount:
    """Tests for GET /api/v1/admin/mural/account."""

    def test_unconfigured_returns_503(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        """Test that simulation mode has no account to show."""
        response = client.get("/api/v1/admin/mural/account", headers=admin_headers)

        assert response.status_code == 503
        assert response.json()["error"] == "service_unavailable"

    def test_returns_live_account(
        self,
        client: TestClient,
        admin_headers: dict[str, str],
        live_runtime: PaymentRuntime,
        mock_mural: MagicMock,
    ) -> None:
        """Test that the provider account record is passed through."""
        mock_mural.get_account.return_value = Account(
            id="acct-123", name="Main Account", is_api_enabled=True, status="ACTIVE"
        )

        response = client.get("/api/v1/admin/mural/account", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "acct-123"
        assert data["isApiEnabled"] is True
        mock_mural.get_account.assert_awaited_once_with("acct-123")

    def test_provider_error_returns_502(
        self,
        client: TestClient,
        admin_headers: dict[str, str],
        live_runtime: PaymentRuntime,
        mock_mural: MagicMock,
    ) -> None:
        """Test that provider failures surface as upstream errors."""
        mock_mural.get_account.side_effect = MuralError("unauthorized", status_code=401)

        response = client.get("/api/v1/admin/mural/account", headers=admin_headers)

        assert response.status_code == 502
        data = response.json()
        assert data["error"] == "upstream_error"
        assert data["details"][0]["type"] == "upstream_status"
        assert "401" in data["details"][0]["msg"]


class TestMetrics:
    """Tests for GET /api/v1/admin/metrics."""

    def test_returns_lifecycle_and_http_stats(
        self, client: TestClient, admin_headers: dict[str, str]
    ) -> None:
        """Test that metrics include lifecycle counters and request stats."""
        metrics = get_lifecycle_metrics()
        metrics.reset()
        metrics.record("deposit_matched", "order-1")

        response = client.get("/api/v1/admin/metrics", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["counts"]["deposit_matched"] == 1
        assert data["recent_events"][-1]["event"] == "deposit_matched"
        assert "total_requests" in data["http"]
        metrics.reset()
