from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from ordersync.domain.cart.entities import Cart, CartItem
from ordersync.domain.common.ids import MenuItemId
from ordersync.domain.common.money import Money


def _item(item_id: str, price: str, quantity: int = 1) -> CartItem:
    return CartItem(
        item_id=MenuItemId(item_id),
        name=f"Item {item_id}",
        price=Money.from_decimal(price, "LYD"),
        quantity=quantity,
    )


def test_adding_same_item_merges_quantity() -> None:
    cart = Cart(currency="LYD")
    cart.add(_item("itm_001", "25.50"))
    cart.add(_item("itm_001", "25.50", quantity=2))

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 3
    assert cart.total_items() == 3


def test_totals() -> None:
    cart = Cart(currency="LYD", items=[_item("itm_001", "25.50", 2), _item("itm_003", "8.00")])

    assert cart.total_items() == 3
    assert cart.total_price() == Money.from_decimal("59.00", "LYD")


def test_update_quantity_to_zero_removes_line() -> None:
    cart = Cart(currency="LYD", items=[_item("itm_001", "25.50", 2), _item("itm_003", "8.00")])

    cart.update_quantity(MenuItemId("itm_001"), 0)

    assert [item.item_id for item in cart.items] == [MenuItemId("itm_003")]


def test_update_quantity_replaces_quantity() -> None:
    cart = Cart(currency="LYD", items=[_item("itm_001", "25.50", 2)])

    cart.update_quantity(MenuItemId("itm_001"), 5)

    assert cart.items[0].quantity == 5


def test_clear_and_only() -> None:
    cart = Cart(currency="LYD", items=[_item("itm_001", "1.00"), _item("itm_002", "2.00")])

    kept = cart.only({MenuItemId("itm_002")})
    cart.clear()

    assert cart.is_empty()
    assert [item.item_id for item in kept.items] == [MenuItemId("itm_002")]


def test_currency_mismatch_is_rejected() -> None:
    cart = Cart(currency="LYD")
    with pytest.raises(ValueError):
        cart.add(
            CartItem(
                item_id=MenuItemId("itm_001"),
                name="Item",
                price=Money.from_decimal("1.00", "USD"),
                quantity=1,
            )
        )
