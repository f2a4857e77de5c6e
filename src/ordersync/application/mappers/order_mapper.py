from __future__ import annotations

from collections.abc import Sequence

from ordersync.application.dto.responses import (
    MoneyResponse,
    OrderItemResponse,
    OrderPlacedResponse,
    OrderResponse,
    StatusHistoryEntryResponse,
)
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import Order, OrderItem


def to_money_response(money: Money) -> MoneyResponse:
    return MoneyResponse(amountCents=money.amount_cents, currency=money.currency)


def to_order_item_response(item: OrderItem) -> OrderItemResponse:
    return OrderItemResponse(
        id=str(item.item_id),
        orderId=str(item.order_id),
        menuItemId=str(item.menu_item_id) if item.menu_item_id is not None else None,
        itemName=item.item_name,
        itemPrice=to_money_response(item.item_price),
        quantity=item.quantity,
        subtotal=to_money_response(item.subtotal),
        createdAt=item.created_at,
    )


def to_order_response(order: Order, items: Sequence[OrderItem] = ()) -> OrderResponse:
    location = order.customer_location
    return OrderResponse(
        orderId=str(order.order_id),
        orderNumber=order.order_number,
        branchId=str(order.branch_id),
        restaurantName=order.restaurant_name,
        customerName=order.customer_name,
        customerPhone=order.customer_phone,
        deliveryMethod=order.delivery_method.value,
        deliveryArea=order.delivery_area,
        deliveryAddress=order.delivery_address,
        deliveryNotes=order.delivery_notes,
        customerLatitude=location.latitude if location else None,
        customerLongitude=location.longitude if location else None,
        paymentMethod=order.payment_method.value,
        itemsTotal=to_money_response(order.items_total),
        deliveryPrice=to_money_response(order.delivery_price),
        totalAmount=to_money_response(order.total_amount),
        status=order.status.value,
        statusHistory=[
            StatusHistoryEntryResponse(
                status=entry.status.value,
                timestamp=entry.timestamp,
                notes=entry.notes,
            )
            for entry in order.status_history
        ],
        items=[to_order_item_response(item) for item in items],
        createdAt=order.created_at,
        updatedAt=order.updated_at,
    )


def to_order_placed_response(order: Order) -> OrderPlacedResponse:
    return OrderPlacedResponse(
        orderId=str(order.order_id),
        orderNumber=order.order_number,
        status=order.status.value,
        itemsTotal=to_money_response(order.items_total),
        deliveryPrice=to_money_response(order.delivery_price),
        totalAmount=to_money_response(order.total_amount),
    )
