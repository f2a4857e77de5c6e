from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId
from ordersync.domain.order.entities import Order, OrderItem
from ordersync.domain.order.status import OrderStatus


class OrderStore(Protocol):
    async def insert_order(self, order: Order) -> Order: ...

    async def insert_items(self, items: Sequence[OrderItem]) -> list[OrderItem]: ...

    async def delete_order(self, order_id: OrderId) -> None: ...

    async def get_order(self, order_id: OrderId) -> Order | None: ...

    async def list_items(self, order_ids: Sequence[OrderId]) -> list[OrderItem]: ...

    async def update_status(self, order: Order, expected_status: OrderStatus) -> Order: ...

    async def list_orders(
        self,
        branch_id: BranchId | None,
        status: OrderStatus | None,
        limit: int,
        cursor: str | None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> tuple[list[Order], str | None]: ...

    async def generate_order_number(self) -> str: ...


@runtime_checkable
class AtomicOrderStore(Protocol):
    async def insert_order_with_items(
        self,
        order: Order,
        items: Sequence[OrderItem],
    ) -> Order: ...


class MenuAvailabilityRepository(Protocol):
    async def get_availability(self, item_ids: Sequence[MenuItemId]) -> dict[MenuItemId, bool]: ...


class StoreError(Exception):
    pass


class StatusConflictError(Exception):
    pass


class InvalidCursorError(Exception):
    pass
