from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ordersync.domain.common.ids import BranchId, OrderId, OrderItemId
from ordersync.domain.order.entities import Order, OrderItem
from ordersync.domain.order.events import (
    OrderChange,
    order_inserted,
    order_item_inserted,
)
from ordersync.domain.order.status import OrderStatus


@dataclass(frozen=True)
class AppliedChange:
    """Outcome of merging one change into the view."""

    change: OrderChange
    changed: bool
    newly_seen_order: bool


def _order_rank(order: Order) -> tuple[int, object]:
    return (len(order.status_history), order.updated_at)


def _item_rank(item: OrderItem) -> object:
    return item.created_at


class OrderView:
    """Local, merge-only copy of the branch's recent orders.

    Rows are only ever merged through ``apply``. A row replaces the held one
    unless the held row is strictly further along (longer status history, or
    the same history with a later ``updated_at``). Status history only grows,
    so the merge is commutative and applying a change twice is a no-op.

    ``retain`` and ``trim`` evict rows: after a resync the view holds exactly
    what the store returned, and it never grows past the latest N orders.
    """

    def __init__(self, branch_id: BranchId | None = None) -> None:
        self._branch_id = branch_id
        self._orders: dict[OrderId, Order] = {}
        self._items: dict[OrderId, dict[OrderItemId, OrderItem]] = {}

    @property
    def branch_id(self) -> BranchId | None:
        return self._branch_id

    def apply(self, change: OrderChange) -> AppliedChange:
        if self._branch_id is not None and change.branch_id != self._branch_id:
            return AppliedChange(change=change, changed=False, newly_seen_order=False)
        if change.order is not None:
            return self._apply_order(change, change.order)
        if change.item is not None:
            return self._apply_item(change, change.item)
        raise ValueError(f"{change.kind.value} change carries no row")

    def merge_snapshot(
        self,
        orders: Iterable[Order],
        items: Iterable[OrderItem] = (),
    ) -> list[Order]:
        """Merge a full re-fetch; returns orders the view had never held."""
        discovered: list[Order] = []
        for order in orders:
            result = self.apply(order_inserted(order))
            if result.newly_seen_order:
                discovered.append(order)
        for item in items:
            held = self._orders.get(item.order_id)
            branch_id = held.branch_id if held is not None else self._branch_id
            if branch_id is None:
                continue
            self.apply(order_item_inserted(item, branch_id))
        return discovered

    def retain(self, order_ids: Iterable[OrderId]) -> list[OrderId]:
        """Drop every order not in ``order_ids``, and all items without an order."""
        keep = set(order_ids)
        removed = [order_id for order_id in self._orders if order_id not in keep]
        for order_id in removed:
            del self._orders[order_id]
        for order_id in [order_id for order_id in self._items if order_id not in self._orders]:
            del self._items[order_id]
        return removed

    def trim(self, limit: int) -> list[OrderId]:
        """Keep the newest ``limit`` orders.

        Items still waiting for their order are kept unless they are older
        than the oldest order left in the view.
        """
        ordered = self.orders()
        removed = [order.order_id for order in ordered[limit:]]
        for order_id in removed:
            del self._orders[order_id]
            self._items.pop(order_id, None)
        if removed and ordered[:limit]:
            oldest = ordered[limit - 1].created_at
            for order_id, items in list(self._items.items()):
                if order_id in self._orders:
                    continue
                if all(item.created_at < oldest for item in items.values()):
                    del self._items[order_id]
        return removed

    def orders(self, limit: int | None = None) -> list[Order]:
        ordered = sorted(
            self._orders.values(),
            key=lambda order: (order.created_at, str(order.order_id)),
            reverse=True,
        )
        return ordered if limit is None else ordered[:limit]

    def get(self, order_id: OrderId) -> Order | None:
        return self._orders.get(order_id)

    def items_for(self, order_id: OrderId) -> list[OrderItem]:
        items = self._items.get(order_id, {})
        return sorted(items.values(), key=lambda item: (item.created_at, str(item.item_id)))

    def status_of(self, order_id: OrderId) -> OrderStatus | None:
        order = self._orders.get(order_id)
        return order.status if order is not None else None

    def contains(self, order_id: OrderId) -> bool:
        return order_id in self._orders

    def __len__(self) -> int:
        return len(self._orders)

    def _apply_order(self, change: OrderChange, incoming: Order) -> AppliedChange:
        held = self._orders.get(incoming.order_id)
        if held is None:
            self._orders[incoming.order_id] = incoming
            return AppliedChange(change=change, changed=True, newly_seen_order=True)
        if _order_rank(held) > _order_rank(incoming):
            return AppliedChange(change=change, changed=False, newly_seen_order=False)
        self._orders[incoming.order_id] = incoming
        return AppliedChange(change=change, changed=held != incoming, newly_seen_order=False)

    def _apply_item(self, change: OrderChange, incoming: OrderItem) -> AppliedChange:
        # Items may arrive before their order row; keep them until it shows up.
        items = self._items.setdefault(incoming.order_id, {})
        held = items.get(incoming.item_id)
        if held is not None and _item_rank(held) > _item_rank(incoming):
            return AppliedChange(change=change, changed=False, newly_seen_order=False)
        items[incoming.item_id] = incoming
        return AppliedChange(change=change, changed=held != incoming, newly_seen_order=False)
