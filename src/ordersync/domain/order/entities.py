from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.status import TERMINAL_STATUSES, OrderStatus, ensure_transition


class DeliveryMethod(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90 <= self.latitude <= 90:
            raise ValueError("latitude must be between -90 and 90")
        if not -180 <= self.longitude <= 180:
            raise ValueError("longitude must be between -180 and 180")


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: OrderStatus
    timestamp: datetime
    notes: str | None = None


@dataclass(frozen=True)
class OrderItem:
    item_id: OrderItemId
    order_id: OrderId
    menu_item_id: MenuItemId | None
    item_name: str
    item_price: Money
    quantity: int
    subtotal: Money
    created_at: datetime

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")
        if self.subtotal != self.item_price.times(self.quantity):
            raise ValueError("subtotal must equal item_price * quantity")


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    order_number: str
    branch_id: BranchId
    restaurant_name: str
    customer_name: str
    customer_phone: str
    delivery_method: DeliveryMethod
    payment_method: PaymentMethod
    items_total: Money
    delivery_price: Money
    total_amount: Money
    status: OrderStatus
    status_history: tuple[StatusHistoryEntry, ...]
    created_at: datetime
    updated_at: datetime
    delivery_area: str | None = None
    delivery_address: str | None = None
    delivery_notes: str | None = None
    customer_location: GeoPoint | None = None

    def __post_init__(self) -> None:
        if self.total_amount != self.items_total + self.delivery_price:
            raise ValueError("total_amount must equal items_total + delivery_price")
        if self.delivery_method == DeliveryMethod.PICKUP:
            if self.delivery_price.amount_cents != 0:
                raise ValueError("delivery_price must be zero for pickup orders")
            if self.delivery_area or self.delivery_address or self.delivery_notes:
                raise ValueError("delivery details are only allowed for delivery orders")
        if not self.status_history:
            raise ValueError("status_history must contain at least one entry")
        first = self.status_history[0]
        if first.status != OrderStatus.PENDING or first.timestamp != self.created_at:
            raise ValueError("status_history must start with pending at created_at")
        if self.status_history[-1].status != self.status:
            raise ValueError("last status_history entry must match status")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(
        self,
        new_status: OrderStatus,
        now: datetime,
        notes: str | None = None,
    ) -> Order:
        ensure_transition(self.status, new_status)
        entry = StatusHistoryEntry(status=new_status, timestamp=now, notes=notes)
        return replace(
            self,
            status=new_status,
            status_history=(*self.status_history, entry),
            updated_at=now,
        )


@dataclass(frozen=True)
class OrderDraft:
    """An order row and its item rows, ready to be written together."""

    order: Order
    items: tuple[OrderItem, ...]

    def __post_init__(self) -> None:
        if not self.items:
            raise ValueError("order must contain at least one item")
        currency = self.order.items_total.currency
        expected = sum(item.subtotal.amount_cents for item in self.items)
        if Money(amount_cents=expected, currency=currency) != self.order.items_total:
            raise ValueError("items_total must equal the sum of item subtotals")
        if any(item.order_id != self.order.order_id for item in self.items):
            raise ValueError("every item must reference the draft order")


@dataclass(frozen=True)
class DraftLine:
    menu_item_id: MenuItemId
    name: str
    price: Money
    quantity: int


def create_order_draft(
    *,
    order_id: OrderId,
    order_number: str,
    branch_id: BranchId,
    restaurant_name: str,
    customer_name: str,
    customer_phone: str,
    delivery_method: DeliveryMethod,
    payment_method: PaymentMethod,
    lines: list[DraftLine],
    item_ids: list[OrderItemId],
    delivery_price: Money,
    now: datetime,
    delivery_area: str | None = None,
    delivery_address: str | None = None,
    delivery_notes: str | None = None,
    customer_location: GeoPoint | None = None,
) -> OrderDraft:
    if not lines:
        raise ValueError("order must contain at least one item")
    if len(item_ids) != len(lines):
        raise ValueError("one item id is required per line")

    currency = lines[0].price.currency
    items = tuple(
        OrderItem(
            item_id=item_id,
            order_id=order_id,
            menu_item_id=line.menu_item_id,
            item_name=line.name,
            item_price=line.price,
            quantity=line.quantity,
            subtotal=line.price.times(line.quantity),
            created_at=now,
        )
        for item_id, line in zip(item_ids, lines)
    )
    items_total = Money(
        amount_cents=sum(item.subtotal.amount_cents for item in items),
        currency=currency,
    )
    if delivery_method == DeliveryMethod.PICKUP:
        delivery_price = Money.zero(currency)
        delivery_area = delivery_address = delivery_notes = None

    order = Order(
        order_id=order_id,
        order_number=order_number,
        branch_id=branch_id,
        restaurant_name=restaurant_name,
        customer_name=customer_name,
        customer_phone=customer_phone,
        delivery_method=delivery_method,
        payment_method=payment_method,
        items_total=items_total,
        delivery_price=delivery_price,
        total_amount=items_total + delivery_price,
        status=OrderStatus.PENDING,
        status_history=(StatusHistoryEntry(status=OrderStatus.PENDING, timestamp=now),),
        created_at=now,
        updated_at=now,
        delivery_area=delivery_area,
        delivery_address=delivery_address,
        delivery_notes=delivery_notes,
        customer_location=customer_location,
    )
    return OrderDraft(order=order, items=items)
