"""Unit tests for OrderStore."""

from unittest.mock import MagicMock

import pytest

from src.models.order import OrderStatus
from src.services.order_store import OrderStore, OrderStoreError


def response(data) -> MagicMock:
    mock_response = MagicMock()
    mock_response.data = data
    return mock_response


@pytest.fixture
def supabase() -> MagicMock:
    return MagicMock()


@pytest.fixture
def store(supabase: MagicMock) -> OrderStore:
    return OrderStore(client=supabase)


class TestCreate:
    """Tests for OrderStore.create."""

    @pytest.mark.asyncio
    async def test_inserts_pending_order_with_computed_total(
        self, store: OrderStore, supabase: MagicMock
    ) -> None:
        items = [
            {"product_id": "starter-kit", "name": "Starter Kit", "price_usdc": 1.0, "quantity": 2},
            {"product_id": "design-library", "name": "Design Library", "price_usdc": 6.5, "quantity": 1},
        ]
        supabase.table.return_value.insert.return_value.execute.return_value = response(
            [{"id": "order-1", "amount_usdc": 8.5, "status": "pending_payment"}]
        )

        order = await store.create("Ada", items, "ada@example.com")

        inserted = supabase.table.return_value.insert.call_args[0][0]
        assert inserted["amount_usdc"] == 8.5
        assert inserted["status"] == "pending_payment"
        assert inserted["amount_cop"] is None
        assert order["id"] == "order-1"

    @pytest.mark.asyncio
    async def test_empty_insert_result_raises(self, store: OrderStore, supabase: MagicMock) -> None:
        supabase.table.return_value.insert.return_value.execute.return_value = response([])

        with pytest.raises(OrderStoreError):
            await store.create("Ada", [])

    @pytest.mark.asyncio
    async def test_client_errors_are_wrapped(self, store: OrderStore, supabase: MagicMock) -> None:
        supabase.table.return_value.insert.return_value.execute.side_effect = RuntimeError("boom")

        with pytest.raises(OrderStoreError):
            await store.create("Ada", [])


class TestReads:
    """Tests for get and list operations."""

    @pytest.mark.asyncio
    async def test_get_returns_none_when_missing(self, store: OrderStore, supabase: MagicMock) -> None:
        chain = supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value
        chain.execute.return_value = None

        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_get_returns_row(self, store: OrderStore, supabase: MagicMock) -> None:
        chain = supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value
        chain.execute.return_value = response({"id": "order-1"})

        assert await store.get("order-1") == {"id": "order-1"}

    @pytest.mark.asyncio
    async def test_list_all_newest_first(self, store: OrderStore, supabase: MagicMock) -> None:
        chain = supabase.table.return_value.select.return_value.order.return_value
        chain.execute.return_value = response([{"id": "b"}, {"id": "a"}])

        orders = await store.list_all()

        supabase.table.return_value.select.return_value.order.assert_called_once_with(
            "created_at", desc=True
        )
        assert [o["id"] for o in orders] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_list_by_statuses_filters(self, store: OrderStore, supabase: MagicMock) -> None:
        chain = supabase.table.return_value.select.return_value.in_.return_value.order.return_value
        chain.execute.return_value = response([])

        await store.list_by_statuses([OrderStatus.PENDING_PAYMENT, OrderStatus.PAID])

        supabase.table.return_value.select.return_value.in_.assert_called_once_with(
            "status", ["pending_payment", "paid"]
        )


class TestUpdateStatus:
    """Tests for conditional status updates."""

    @pytest.mark.asyncio
    async def test_update_is_conditional_on_allowed_sources(
        self, store: OrderStore, supabase: MagicMock
    ) -> None:
        update = supabase.table.return_value.update
        update.return_value.eq.return_value.in_.return_value.execute.return_value = response([{"id": "o"}])

        assert await store.update_status("o", OrderStatus.WITHDRAWN, 40000.0) is True

        data = update.call_args[0][0]
        assert data["status"] == "withdrawn"
        assert data["amount_cop"] == 40000.0
        status_filter = update.return_value.eq.return_value.in_.call_args[0]
        assert status_filter[0] == "status"
        assert set(status_filter[1]) == {"pending_payment", "paid", "withdrawn"}

    @pytest.mark.asyncio
    async def test_none_estimate_is_not_written(self, store: OrderStore, supabase: MagicMock) -> None:
        update = supabase.table.return_value.update
        update.return_value.eq.return_value.in_.return_value.execute.return_value = response([{"id": "o"}])

        await store.update_status("o", OrderStatus.PAID)

        assert "amount_cop" not in update.call_args[0][0]

    @pytest.mark.asyncio
    async def test_refused_transition_returns_false(self, store: OrderStore, supabase: MagicMock) -> None:
        update = supabase.table.return_value.update
        update.return_value.eq.return_value.in_.return_value.execute.return_value = response([])

        assert await store.update_status("o", OrderStatus.PAID) is False


class TestUpdatePayoutMetadata:
    """Tests for payout metadata writes."""

    @pytest.mark.asyncio
    async def test_writes_id_and_status(self, store: OrderStore, supabase: MagicMock) -> None:
        update = supabase.table.return_value.update
        update.return_value.eq.return_value.execute.return_value = response([{"id": "o"}])

        await store.update_payout_metadata("o", "payout-1", "AWAITING_EXECUTION")

        assert update.call_args[0][0]["payout_request_id"] == "payout-1"
        assert update.call_args[0][0]["payout_status"] == "AWAITING_EXECUTION"

    @pytest.mark.asyncio
    async def test_empty_id_never_clears_stored_id(self, store: OrderStore, supabase: MagicMock) -> None:
        update = supabase.table.return_value.update
        update.return_value.eq.return_value.execute.return_value = response([{"id": "o"}])

        await store.update_payout_metadata("o", None, "EXECUTED")

        assert "payout_request_id" not in update.call_args[0][0]
