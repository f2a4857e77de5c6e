"""In-process order store and change feed.

Used when ``ORDER_STORE_BACKEND=memory`` and throughout the tests. Rows are
kept in their serialized shape so reads hand out fresh domain objects, and
every committed change travels through the same envelope encoding as the
Redis feed.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from datetime import datetime
from typing import Any

from ordersync.application.mappers.cursor import decode_cursor, encode_cursor
from ordersync.application.mappers.event_envelope import InvalidEnvelopeError, parse_change_event
from ordersync.application.mappers.order_rows import (
    item_from_row,
    item_to_row,
    order_from_row,
    order_to_row,
)
from ordersync.application.ports.change_feed import ChangeFeedError
from ordersync.application.ports.repositories import StatusConflictError, StoreError
from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId
from ordersync.domain.order.entities import Order, OrderItem
from ordersync.domain.order.events import (
    ChangeKind,
    OrderChange,
    order_inserted,
    order_item_inserted,
    order_updated,
)
from ordersync.domain.order.status import OrderStatus
from ordersync.infrastructure.messaging.change_publisher import ChangePublisher

logger = logging.getLogger(__name__)

_CLOSED = object()


class InMemoryChangeSubscription:
    def __init__(self, feed: InMemoryChangeFeed, kinds: frozenset[ChangeKind]) -> None:
        self._feed = feed
        self._kinds = kinds
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    def deliver(self, change: OrderChange) -> None:
        if not self._closed and change.kind in self._kinds:
            self._queue.put_nowait(change)

    def drop(self) -> None:
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[OrderChange]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[OrderChange]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                if self._closed:
                    return
                raise ChangeFeedError("subscription dropped")
            yield item

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.detach(self)
        self._queue.put_nowait(_CLOSED)


class InMemoryChangeFeed:
    """Publisher and change feed in one; messages are lost while nobody listens."""

    def __init__(self, currency: str) -> None:
        self._currency = currency
        self._subscriptions: list[InMemoryChangeSubscription] = []
        self.published: list[tuple[str, str]] = []
        self.available = True

    async def publish(self, channel: str, message: str) -> None:
        self.published.append((channel, message))
        try:
            change = parse_change_event(message, self._currency)
        except InvalidEnvelopeError:
            logger.warning("change_feed_invalid_message", extra={"channel": channel}, exc_info=True)
            return
        for subscription in list(self._subscriptions):
            subscription.deliver(change)

    async def subscribe(self, kinds: frozenset[ChangeKind]) -> InMemoryChangeSubscription:
        if not self.available:
            raise ChangeFeedError("change feed unavailable")
        subscription = InMemoryChangeSubscription(self, kinds)
        self._subscriptions.append(subscription)
        return subscription

    def detach(self, subscription: InMemoryChangeSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def drop_subscribers(self) -> None:
        """Cut every live subscription, as a broken connection would."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.drop()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


class InMemoryOrderStore:
    """Order store kept in dictionaries.

    Implements only the two-step write so the compensation path is exercised;
    ``fail_next`` injects a ``StoreError`` into the named operation.
    """

    def __init__(self, currency: str, changes: ChangePublisher | None = None) -> None:
        self._currency = currency
        self._changes = changes
        self._orders: dict[str, dict[str, Any]] = {}
        self._items: dict[str, dict[str, Any]] = {}
        self._sequence = itertools.count(1)
        self._lock = asyncio.Lock()
        self._failures: dict[str, int] = {}

    def fail_next(self, operation: str, times: int = 1) -> None:
        self._failures[operation] = self._failures.get(operation, 0) + times

    def _maybe_fail(self, operation: str) -> None:
        remaining = self._failures.get(operation, 0)
        if remaining:
            self._failures[operation] = remaining - 1
            raise StoreError(f"{operation} failed")

    async def insert_order(self, order: Order) -> Order:
        # Announced by insert_items: the order does not exist for staff until its items do.
        async with self._lock:
            self._maybe_fail("insert_order")
            if str(order.order_id) in self._orders:
                raise StoreError(f"order {order.order_id} already exists")
            if any(row["order_number"] == order.order_number for row in self._orders.values()):
                raise StoreError(f"order number {order.order_number} already exists")
            self._orders[str(order.order_id)] = order_to_row(order)
        return order

    async def insert_items(self, items: Sequence[OrderItem]) -> list[OrderItem]:
        async with self._lock:
            self._maybe_fail("insert_items")
            for item in items:
                if str(item.order_id) not in self._orders:
                    raise StoreError(f"order {item.order_id} does not exist")
            for item in items:
                self._items[str(item.item_id)] = item_to_row(item)
            orders = {
                str(item.order_id): order_from_row(self._orders[str(item.order_id)], self._currency)
                for item in items
            }
        for order in orders.values():
            await self._publish(order_inserted(order))
        for item in items:
            await self._publish(order_item_inserted(item, orders[str(item.order_id)].branch_id))
        return list(items)

    async def delete_order(self, order_id: OrderId) -> None:
        async with self._lock:
            self._maybe_fail("delete_order")
            self._orders.pop(str(order_id), None)
            for item_id in [key for key, row in self._items.items() if row["order_id"] == str(order_id)]:
                del self._items[item_id]

    async def get_order(self, order_id: OrderId) -> Order | None:
        self._maybe_fail("get_order")
        row = self._orders.get(str(order_id))
        return order_from_row(row, self._currency) if row is not None else None

    async def list_items(self, order_ids: Sequence[OrderId]) -> list[OrderItem]:
        self._maybe_fail("list_items")
        wanted = {str(order_id) for order_id in order_ids}
        items = [
            item_from_row(row, self._currency)
            for row in self._items.values()
            if row["order_id"] in wanted
        ]
        return sorted(items, key=lambda item: (item.created_at, str(item.item_id)))

    async def update_status(self, order: Order, expected_status: OrderStatus) -> Order:
        async with self._lock:
            self._maybe_fail("update_status")
            row = self._orders.get(str(order.order_id))
            if row is None or row["status"] != expected_status.value:
                raise StatusConflictError(
                    f"order {order.order_id} is no longer {expected_status.value}"
                )
            self._orders[str(order.order_id)] = order_to_row(order)
        await self._publish(order_updated(order))
        return order

    async def list_orders(
        self,
        branch_id: BranchId | None,
        status: OrderStatus | None,
        limit: int,
        cursor: str | None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> tuple[list[Order], str | None]:
        self._maybe_fail("list_orders")
        orders = [order_from_row(row, self._currency) for row in self._orders.values()]
        if branch_id is not None:
            orders = [order for order in orders if order.branch_id == branch_id]
        if status is not None:
            orders = [order for order in orders if order.status == status]
        if created_from is not None:
            orders = [order for order in orders if order.created_at >= created_from]
        if created_to is not None:
            orders = [order for order in orders if order.created_at <= created_to]
        orders.sort(key=lambda order: (order.created_at, str(order.order_id)), reverse=True)

        if cursor:
            cursor_key = decode_cursor(cursor)
            orders = [
                order for order in orders if (order.created_at, str(order.order_id)) < cursor_key
            ]

        page = orders[:limit]
        next_cursor = None
        if len(orders) > limit and page:
            next_cursor = encode_cursor(page[-1].created_at, str(page[-1].order_id))
        return page, next_cursor

    async def generate_order_number(self) -> str:
        self._maybe_fail("generate_order_number")
        return f"{next(self._sequence):06d}"

    async def _publish(self, change: OrderChange) -> None:
        if self._changes is not None:
            await self._changes.publish(change)


class InMemoryMenuAvailability:
    def __init__(self, items: Iterable[tuple[str, bool]] = ()) -> None:
        self._availability: dict[MenuItemId, bool] = {
            MenuItemId(item_id): available for item_id, available in items
        }
        self.unavailable_error: StoreError | None = None

    def set_available(self, item_id: str, available: bool) -> None:
        self._availability[MenuItemId(item_id)] = available

    async def get_availability(self, item_ids: Sequence[MenuItemId]) -> dict[MenuItemId, bool]:
        if self.unavailable_error is not None:
            raise self.unavailable_error
        return {item_id: self._availability[item_id] for item_id in item_ids if item_id in self._availability}
