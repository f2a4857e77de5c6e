from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ordersync.domain.order.entities import DeliveryMethod, PaymentMethod
from ordersync.domain.order.status import OrderStatus


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )


class GeoPointRequest(CamelBaseModel):
    latitude: float
    longitude: float


class CustomerRequest(CamelBaseModel):
    name: str
    phone: str


class DeliveryDetailsRequest(CamelBaseModel):
    area: str | None = None
    address: str | None = None
    notes: str | None = None
    location: GeoPointRequest | None = None


class CartItemRequest(CamelBaseModel):
    id: str
    name: str
    price: Decimal = Field(ge=0)
    quantity: int
    image: str | None = None


class PlaceOrderRequest(CamelBaseModel):
    restaurant_name: str
    customer: CustomerRequest
    delivery_method: DeliveryMethod
    delivery: DeliveryDetailsRequest | None = None
    payment_method: PaymentMethod
    items: list[CartItemRequest] = Field(default_factory=list)
    delivery_price: Decimal | None = Field(default=None, ge=0)
    accepted_unavailable_item_ids: list[str] | None = None


class ChangeOrderStatusRequest(CamelBaseModel):
    status: OrderStatus
    notes: str | None = None


class DeliveryQuoteRequest(CamelBaseModel):
    origin: GeoPointRequest
    destination: GeoPointRequest
