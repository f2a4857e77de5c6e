from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from ordersync.application.ports.repositories import StoreError
from ordersync.application.use_cases.write_order import (
    OrderItemsWriteError,
    OrderRowWriteError,
    OrderWriter,
)
from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import (
    DeliveryMethod,
    DraftLine,
    OrderDraft,
    PaymentMethod,
    create_order_draft,
)


def _draft() -> OrderDraft:
    return create_order_draft(
        order_id=OrderId("ord_001"),
        order_number="000001",
        branch_id=BranchId("brn_001"),
        restaurant_name="Tripoli Grill",
        customer_name="Salem",
        customer_phone="0912345678",
        delivery_method=DeliveryMethod.PICKUP,
        payment_method=PaymentMethod.CASH,
        lines=[DraftLine(MenuItemId("itm_001"), "Shawarma", Money.from_decimal("25.50", "LYD"), 2)],
        item_ids=[OrderItemId("oit_001")],
        delivery_price=Money.zero("LYD"),
        now=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    )


class TwoStepStore:
    def __init__(
        self,
        fail_order: bool = False,
        fail_items: bool = False,
        delete_failures: int = 0,
    ) -> None:
        self.orders: dict[str, object] = {}
        self.items: list[object] = []
        self.fail_order = fail_order
        self.fail_items = fail_items
        self.delete_failures = delete_failures
        self.delete_calls = 0

    async def insert_order(self, order):
        if self.fail_order:
            raise StoreError("order insert failed")
        self.orders[str(order.order_id)] = order
        return order

    async def insert_items(self, items):
        if self.fail_items:
            raise StoreError("items insert failed")
        self.items.extend(items)
        return list(items)

    async def delete_order(self, order_id):
        self.delete_calls += 1
        if self.delete_failures:
            self.delete_failures -= 1
            raise StoreError("delete failed")
        self.orders.pop(str(order_id), None)


class AtomicStore(TwoStepStore):
    async def insert_order_with_items(self, order, items):
        if self.fail_order:
            raise StoreError("transaction failed")
        self.orders[str(order.order_id)] = order
        self.items.extend(items)
        return order


@pytest.mark.asyncio
async def test_two_step_write_persists_order_and_items() -> None:
    store = TwoStepStore()

    written = await OrderWriter(store).write(_draft())

    assert written.order_id == OrderId("ord_001")
    assert written.order_number == "000001"
    assert list(store.orders) == ["ord_001"]
    assert len(store.items) == 1


@pytest.mark.asyncio
async def test_order_row_failure_writes_nothing() -> None:
    store = TwoStepStore(fail_order=True)

    with pytest.raises(OrderRowWriteError) as exc_info:
        await OrderWriter(store).write(_draft())

    assert exc_info.value.stage == "order_row"
    assert exc_info.value.details == {"stage": "order_row", "retryable": True}
    assert store.orders == {}
    assert store.items == []


@pytest.mark.asyncio
async def test_items_failure_deletes_order_row() -> None:
    store = TwoStepStore(fail_items=True)

    with pytest.raises(OrderItemsWriteError) as exc_info:
        await OrderWriter(store, compensation_delay_seconds=0).write(_draft())

    assert exc_info.value.stage == "order_items"
    assert exc_info.value.compensated is True
    assert store.orders == {}
    assert store.delete_calls == 1


@pytest.mark.asyncio
async def test_compensation_is_retried() -> None:
    store = TwoStepStore(fail_items=True, delete_failures=2)

    with pytest.raises(OrderItemsWriteError) as exc_info:
        await OrderWriter(store, compensation_attempts=3, compensation_delay_seconds=0).write(
            _draft()
        )

    assert exc_info.value.compensated is True
    assert store.delete_calls == 3
    assert store.orders == {}


@pytest.mark.asyncio
async def test_failed_compensation_reports_orphan(caplog) -> None:
    store = TwoStepStore(fail_items=True, delete_failures=5)

    with caplog.at_level("ERROR"), pytest.raises(OrderItemsWriteError) as exc_info:
        await OrderWriter(store, compensation_attempts=2, compensation_delay_seconds=0).write(
            _draft()
        )

    assert exc_info.value.compensated is False
    assert exc_info.value.details["compensated"] is False
    assert "ord_001" in store.orders
    assert any(record.getMessage() == "order_orphan_suspected" for record in caplog.records)


@pytest.mark.asyncio
async def test_atomic_store_is_used_when_available() -> None:
    store = AtomicStore(fail_items=True)

    written = await OrderWriter(store).write(_draft())

    assert written.order_id == OrderId("ord_001")
    assert len(store.items) == 1
    assert store.delete_calls == 0


@pytest.mark.asyncio
async def test_atomic_failure_is_an_order_row_failure() -> None:
    store = AtomicStore(fail_order=True)

    with pytest.raises(OrderRowWriteError):
        await OrderWriter(store).write(_draft())

    assert store.orders == {}
