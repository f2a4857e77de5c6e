"""Row-shaped dictionaries for orders and order items.

These are the field names and value encodings shared by the change-feed
payloads and every order store implementation. Money is carried as a decimal
string with two places; timestamps as ISO-8601 strings.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import (
    DeliveryMethod,
    GeoPoint,
    Order,
    OrderItem,
    PaymentMethod,
    StatusHistoryEntry,
)
from ordersync.domain.order.status import OrderStatus


def _money(value: Any, currency: str) -> Money:
    return Money.from_decimal(Decimal(str(value)), currency)


def _timestamp(value: Any) -> datetime:
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def status_history_to_rows(history: tuple[StatusHistoryEntry, ...]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for entry in history:
        row: dict[str, Any] = {
            "status": entry.status.value,
            "timestamp": entry.timestamp.isoformat(),
        }
        if entry.notes is not None:
            row["notes"] = entry.notes
        rows.append(row)
    return rows


def status_history_from_rows(rows: list[dict[str, Any]]) -> tuple[StatusHistoryEntry, ...]:
    return tuple(
        StatusHistoryEntry(
            status=OrderStatus(row["status"]),
            timestamp=_timestamp(row["timestamp"]),
            notes=row.get("notes"),
        )
        for row in rows
    )


def order_to_row(order: Order) -> dict[str, Any]:
    location = order.customer_location
    return {
        "id": str(order.order_id),
        "order_number": order.order_number,
        "branch_id": str(order.branch_id),
        "restaurant_name": order.restaurant_name,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "delivery_method": order.delivery_method.value,
        "delivery_area": order.delivery_area,
        "delivery_address": order.delivery_address,
        "delivery_notes": order.delivery_notes,
        "customer_latitude": location.latitude if location else None,
        "customer_longitude": location.longitude if location else None,
        "payment_method": order.payment_method.value,
        "items_total": str(order.items_total.to_decimal()),
        "delivery_price": str(order.delivery_price.to_decimal()),
        "total_amount": str(order.total_amount.to_decimal()),
        "status": order.status.value,
        "status_history": status_history_to_rows(order.status_history),
        "created_at": order.created_at.isoformat(),
        "updated_at": order.updated_at.isoformat(),
    }


def order_from_row(row: dict[str, Any], currency: str) -> Order:
    latitude = row.get("customer_latitude")
    longitude = row.get("customer_longitude")
    location = None
    if latitude is not None and longitude is not None:
        location = GeoPoint(latitude=float(latitude), longitude=float(longitude))

    return Order(
        order_id=OrderId(str(row["id"])),
        order_number=str(row["order_number"]),
        branch_id=BranchId(str(row["branch_id"])),
        restaurant_name=row["restaurant_name"],
        customer_name=row["customer_name"],
        customer_phone=row["customer_phone"],
        delivery_method=DeliveryMethod(row["delivery_method"]),
        payment_method=PaymentMethod(row["payment_method"]),
        items_total=_money(row["items_total"], currency),
        delivery_price=_money(row["delivery_price"], currency),
        total_amount=_money(row["total_amount"], currency),
        status=OrderStatus(row["status"]),
        status_history=status_history_from_rows(row["status_history"]),
        created_at=_timestamp(row["created_at"]),
        updated_at=_timestamp(row["updated_at"]),
        delivery_area=row.get("delivery_area"),
        delivery_address=row.get("delivery_address"),
        delivery_notes=row.get("delivery_notes"),
        customer_location=location,
    )


def item_to_row(item: OrderItem) -> dict[str, Any]:
    return {
        "id": str(item.item_id),
        "order_id": str(item.order_id),
        "menu_item_id": str(item.menu_item_id) if item.menu_item_id is not None else None,
        "item_name": item.item_name,
        "item_price": str(item.item_price.to_decimal()),
        "quantity": item.quantity,
        "subtotal": str(item.subtotal.to_decimal()),
        "created_at": item.created_at.isoformat(),
    }


def item_from_row(row: dict[str, Any], currency: str) -> OrderItem:
    menu_item_id = row.get("menu_item_id")
    return OrderItem(
        item_id=OrderItemId(str(row["id"])),
        order_id=OrderId(str(row["order_id"])),
        menu_item_id=MenuItemId(str(menu_item_id)) if menu_item_id is not None else None,
        item_name=row["item_name"],
        item_price=_money(row["item_price"], currency),
        quantity=int(row["quantity"]),
        subtotal=_money(row["subtotal"], currency),
        created_at=_timestamp(row["created_at"]),
    )
