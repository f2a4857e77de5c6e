from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ordersync.domain.common.ids import BranchId, OrderId
from ordersync.domain.order.entities import Order, OrderItem


class ChangeKind(str, Enum):
    ORDER_INSERTED = "order.inserted"
    ORDER_UPDATED = "order.updated"
    ORDER_ITEM_INSERTED = "order_item.inserted"
    ORDER_ITEM_UPDATED = "order_item.updated"


ALL_CHANGE_KINDS = frozenset(ChangeKind)
ORDER_KINDS = frozenset({ChangeKind.ORDER_INSERTED, ChangeKind.ORDER_UPDATED})
ITEM_KINDS = frozenset({ChangeKind.ORDER_ITEM_INSERTED, ChangeKind.ORDER_ITEM_UPDATED})


@dataclass(frozen=True)
class OrderChange:
    """One row-level change from the order store's change feed."""

    kind: ChangeKind
    branch_id: BranchId
    order: Order | None = None
    item: OrderItem | None = None

    def __post_init__(self) -> None:
        if self.kind in ORDER_KINDS and (self.order is None or self.item is not None):
            raise ValueError(f"{self.kind.value} change must carry exactly an order row")
        if self.kind in ITEM_KINDS and (self.item is None or self.order is not None):
            raise ValueError(f"{self.kind.value} change must carry exactly an item row")

    @property
    def order_id(self) -> OrderId:
        if self.order is not None:
            return self.order.order_id
        if self.item is not None:
            return self.item.order_id
        raise ValueError(f"{self.kind.value} change carries no row")


def order_inserted(order: Order) -> OrderChange:
    return OrderChange(kind=ChangeKind.ORDER_INSERTED, branch_id=order.branch_id, order=order)


def order_updated(order: Order) -> OrderChange:
    return OrderChange(kind=ChangeKind.ORDER_UPDATED, branch_id=order.branch_id, order=order)


def order_item_inserted(item: OrderItem, branch_id: BranchId) -> OrderChange:
    return OrderChange(kind=ChangeKind.ORDER_ITEM_INSERTED, branch_id=branch_id, item=item)
