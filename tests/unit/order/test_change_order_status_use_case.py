from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from ordersync.application.ports.repositories import StatusConflictError
from ordersync.application.use_cases.change_order_status import (
    ChangeOrderStatus,
    InvalidOrderTransitionError,
    OrderConflictError,
)
from ordersync.application.use_cases.get_order import GetOrder, OrderNotFoundError
from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import (
    DeliveryMethod,
    DraftLine,
    PaymentMethod,
    create_order_draft,
)
from ordersync.domain.order.status import OrderStatus
from ordersync.infrastructure.memory.order_store import InMemoryOrderStore


async def _stored_order(store: InMemoryOrderStore, order_id: str = "ord_001") -> OrderId:
    draft = create_order_draft(
        order_id=OrderId(order_id),
        order_number=await store.generate_order_number(),
        branch_id=BranchId("brn_001"),
        restaurant_name="Tripoli Grill",
        customer_name="Salem",
        customer_phone="0912345678",
        delivery_method=DeliveryMethod.DELIVERY,
        payment_method=PaymentMethod.CASH,
        lines=[DraftLine(MenuItemId("itm_001"), "Shawarma", Money.from_decimal("25.50", "LYD"), 1)],
        item_ids=[OrderItemId(f"{order_id}_item")],
        delivery_price=Money.from_decimal("5", "LYD"),
        now=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        delivery_area="Gurji",
    )
    await store.insert_order(draft.order)
    await store.insert_items(draft.items)
    return draft.order.order_id


async def _advance(use_case: ChangeOrderStatus, order_id: OrderId, *statuses: OrderStatus) -> None:
    for status in statuses:
        await use_case.execute(order_id, status)


@pytest.mark.asyncio
async def test_order_moves_through_kitchen_flow() -> None:
    store = InMemoryOrderStore("LYD")
    order_id = await _stored_order(store)
    use_case = ChangeOrderStatus(store)

    await _advance(use_case, order_id, OrderStatus.CONFIRMED, OrderStatus.PREPARING)
    response = await use_case.execute(order_id, OrderStatus.READY, notes="bag 3")

    assert response.status == "ready"
    assert [entry.status for entry in response.statusHistory] == [
        "pending",
        "confirmed",
        "preparing",
        "ready",
    ]
    assert response.statusHistory[-1].notes == "bag 3"
    assert len(response.items) == 1


@pytest.mark.asyncio
async def test_skipping_a_step_is_rejected() -> None:
    store = InMemoryOrderStore("LYD")
    order_id = await _stored_order(store)

    with pytest.raises(InvalidOrderTransitionError) as exc_info:
        await ChangeOrderStatus(store).execute(order_id, OrderStatus.READY)

    assert exc_info.value.details == {"currentStatus": "pending", "requestedStatus": "ready"}
    order = await store.get_order(order_id)
    assert order is not None and order.status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_terminal_order_cannot_be_cancelled() -> None:
    store = InMemoryOrderStore("LYD")
    order_id = await _stored_order(store)
    use_case = ChangeOrderStatus(store)
    await _advance(use_case, order_id, OrderStatus.CANCELLED)

    with pytest.raises(InvalidOrderTransitionError):
        await use_case.execute(order_id, OrderStatus.CANCELLED)


@pytest.mark.asyncio
async def test_unknown_order_is_not_found() -> None:
    store = InMemoryOrderStore("LYD")

    with pytest.raises(OrderNotFoundError):
        await ChangeOrderStatus(store).execute(OrderId("missing"), OrderStatus.CONFIRMED)
    with pytest.raises(OrderNotFoundError):
        await GetOrder(store).execute(OrderId("missing"))


@pytest.mark.asyncio
async def test_concurrent_completion_succeeds_once() -> None:
    store = InMemoryOrderStore("LYD")
    order_id = await _stored_order(store)
    use_case = ChangeOrderStatus(store)
    await _advance(
        use_case,
        order_id,
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
    )

    results = await asyncio.gather(
        use_case.execute(order_id, OrderStatus.COMPLETED),
        use_case.execute(order_id, OrderStatus.COMPLETED),
        return_exceptions=True,
    )

    succeeded = [result for result in results if not isinstance(result, Exception)]
    failed = [result for result in results if isinstance(result, Exception)]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], InvalidOrderTransitionError)
    order = await store.get_order(order_id)
    assert order is not None
    assert order.status == OrderStatus.COMPLETED
    assert len(order.status_history) == 5


class RacingStore(InMemoryOrderStore):
    """Reports a lost conditional update after another writer got there first."""

    def __init__(self, currency: str, competing_status: OrderStatus) -> None:
        super().__init__(currency)
        self._competing_status = competing_status

    async def update_status(self, order, expected_status):
        current = await self.get_order(order.order_id)
        assert current is not None
        await super().update_status(
            current.transition_to(self._competing_status, now=order.updated_at),
            expected_status=expected_status,
        )
        raise StatusConflictError("lost the race")


@pytest.mark.asyncio
async def test_lost_race_to_a_terminal_status_is_an_invalid_transition() -> None:
    store = RacingStore("LYD", competing_status=OrderStatus.CANCELLED)
    order_id = await _stored_order(store)

    with pytest.raises(InvalidOrderTransitionError) as exc_info:
        await ChangeOrderStatus(store).execute(order_id, OrderStatus.CONFIRMED)

    assert exc_info.value.current == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_lost_race_that_still_allows_the_move_is_a_conflict() -> None:
    store = RacingStore("LYD", competing_status=OrderStatus.CONFIRMED)
    order_id = await _stored_order(store)

    with pytest.raises(OrderConflictError):
        await ChangeOrderStatus(store).execute(order_id, OrderStatus.CANCELLED)


@pytest.mark.asyncio
async def test_get_order_includes_items() -> None:
    store = InMemoryOrderStore("LYD")
    order_id = await _stored_order(store)

    response = await GetOrder(store).execute(order_id)

    assert response.orderId == "ord_001"
    assert response.totalAmount.amountCents == 3050
    assert [item.itemName for item in response.items] == ["Shawarma"]
