from __future__ import annotations

from dataclasses import dataclass, replace

from ordersync.domain.common.ids import MenuItemId
from ordersync.domain.common.money import Money


@dataclass(frozen=True)
class CartItem:
    item_id: MenuItemId
    name: str
    price: Money
    quantity: int
    image: str | None = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")
        if not self.name.strip():
            raise ValueError("name must be non-empty")

    @property
    def subtotal(self) -> Money:
        return self.price.times(self.quantity)


class Cart:
    """Pre-order basket held by the customer until an order is durably created."""

    def __init__(self, currency: str, items: list[CartItem] | None = None) -> None:
        self._currency = currency
        self._items: list[CartItem] = []
        for item in items or []:
            self.add(item)

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def add(self, item: CartItem) -> None:
        if item.price.currency != self._currency:
            raise ValueError("cart item currency must match cart currency")
        for index, existing in enumerate(self._items):
            if existing.item_id == item.item_id:
                self._items[index] = replace(existing, quantity=existing.quantity + item.quantity)
                return
        self._items.append(item)

    def update_quantity(self, item_id: MenuItemId, quantity: int) -> None:
        if quantity <= 0:
            self.remove(item_id)
            return
        self._items = [
            replace(item, quantity=quantity) if item.item_id == item_id else item
            for item in self._items
        ]

    def remove(self, item_id: MenuItemId) -> None:
        self._items = [item for item in self._items if item.item_id != item_id]

    def clear(self) -> None:
        self._items = []

    def only(self, item_ids: set[MenuItemId]) -> Cart:
        return Cart(
            currency=self._currency,
            items=[item for item in self._items if item.item_id in item_ids],
        )

    def total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    def total_price(self) -> Money:
        return Money(
            amount_cents=sum(item.subtotal.amount_cents for item in self._items),
            currency=self._currency,
        )
