from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timezone
from uuid import uuid4

from ordersync.application.dto.requests import PlaceOrderRequest
from ordersync.application.ports.repositories import OrderStore, StoreError
from ordersync.domain.cart.entities import Cart, CartItem
from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import (
    DeliveryMethod,
    DraftLine,
    GeoPoint,
    OrderDraft,
    create_order_draft,
)

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^(091|092|093|094|095)\d{7}$")
FALLBACK_ORDER_NUMBER_PREFIX = "ORD-"


class OrderValidationError(Exception):
    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(f"order validation failed: {', '.join(sorted(errors))}")
        self.errors = errors
        self.details = {"fields": errors}


def normalize_phone(phone: str) -> str:
    return re.sub(r"[\s-]", "", phone)


def validate_order_request(request_dto: PlaceOrderRequest) -> None:
    errors: dict[str, str] = {}

    if not request_dto.restaurant_name.strip():
        errors["restaurantName"] = "restaurant name is required"
    if not request_dto.customer.name.strip():
        errors["customer.name"] = "customer name is required"

    phone = normalize_phone(request_dto.customer.phone)
    if not phone:
        errors["customer.phone"] = "phone number is required"
    elif not PHONE_PATTERN.match(phone):
        errors["customer.phone"] = "phone number must look like 0912345678"

    if not request_dto.items:
        errors["items"] = "cart must contain at least one item"
    for index, item in enumerate(request_dto.items):
        if item.quantity < 1:
            errors[f"items[{index}].quantity"] = "quantity must be >= 1"
        if not item.name.strip():
            errors[f"items[{index}].name"] = "item name is required"

    if request_dto.delivery_method == DeliveryMethod.DELIVERY:
        delivery = request_dto.delivery
        if delivery is None or not (delivery.area or "").strip():
            errors["delivery.area"] = "delivery area is required"
        if delivery is None or delivery.location is None:
            errors["delivery.location"] = "customer location is required for delivery"
        elif not (
            -90 <= delivery.location.latitude <= 90
            and -180 <= delivery.location.longitude <= 180
        ):
            errors["delivery.location"] = "customer location is out of range"

    if errors:
        raise OrderValidationError(errors)


def cart_from_request(request_dto: PlaceOrderRequest, currency: str) -> Cart:
    return Cart(
        currency=currency,
        items=[
            CartItem(
                item_id=MenuItemId(item.id),
                name=item.name,
                price=Money.from_decimal(item.price, currency),
                quantity=item.quantity,
                image=item.image,
            )
            for item in request_dto.items
        ],
    )


def fallback_order_number(now: datetime | None = None) -> str:
    current = now or datetime.now(timezone.utc)
    millis = int(current.timestamp() * 1000)
    return f"{FALLBACK_ORDER_NUMBER_PREFIX}{millis}-{secrets.token_hex(2)}"


def is_fallback_order_number(order_number: str) -> bool:
    return order_number.startswith(FALLBACK_ORDER_NUMBER_PREFIX)


class OrderNumberAllocator:
    def __init__(self, order_store: OrderStore) -> None:
        self._order_store = order_store

    async def allocate(self) -> str:
        try:
            number = await self._order_store.generate_order_number()
        except StoreError:
            logger.warning("order_number_generator_failed", exc_info=True)
            return fallback_order_number()
        if not number:
            logger.warning("order_number_generator_empty")
            return fallback_order_number()
        return number


def build_order_draft(
    *,
    branch_id: BranchId,
    request_dto: PlaceOrderRequest,
    cart: Cart,
    order_number: str,
    delivery_price: Money,
    now: datetime,
) -> OrderDraft:
    """Assemble the order and item rows from the cart as it stands.

    Prices come from the cart snapshot; the catalog is not re-read here.
    Totals are always recomputed from the lines, never taken from the caller.
    """
    delivery = request_dto.delivery
    is_delivery = request_dto.delivery_method == DeliveryMethod.DELIVERY
    area = address = notes = None
    location = None
    if is_delivery and delivery is not None:
        area = (delivery.area or "").strip() or None
        address = delivery.address
        notes = delivery.notes
        if delivery.location is not None:
            location = GeoPoint(
                latitude=delivery.location.latitude,
                longitude=delivery.location.longitude,
            )

    lines = [
        DraftLine(
            menu_item_id=item.item_id,
            name=item.name,
            price=item.price,
            quantity=item.quantity,
        )
        for item in cart.items
    ]
    return create_order_draft(
        order_id=OrderId(str(uuid4())),
        order_number=order_number,
        branch_id=branch_id,
        restaurant_name=request_dto.restaurant_name.strip(),
        customer_name=request_dto.customer.name.strip(),
        customer_phone=normalize_phone(request_dto.customer.phone),
        delivery_method=request_dto.delivery_method,
        payment_method=request_dto.payment_method,
        lines=lines,
        item_ids=[OrderItemId(str(uuid4())) for _ in lines],
        delivery_price=delivery_price,
        now=now,
        delivery_area=area,
        delivery_address=address,
        delivery_notes=notes,
        customer_location=location,
    )
