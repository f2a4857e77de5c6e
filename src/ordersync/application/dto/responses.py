from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class MoneyResponse(BaseModel):
    amountCents: int
    currency: str


class StatusHistoryEntryResponse(BaseModel):
    status: str
    timestamp: datetime
    notes: str | None = None


class OrderItemResponse(BaseModel):
    id: str
    orderId: str
    menuItemId: str | None = None
    itemName: str
    itemPrice: MoneyResponse
    quantity: int
    subtotal: MoneyResponse
    createdAt: datetime


class OrderResponse(BaseModel):
    orderId: str
    orderNumber: str
    branchId: str
    restaurantName: str
    customerName: str
    customerPhone: str
    deliveryMethod: str
    deliveryArea: str | None = None
    deliveryAddress: str | None = None
    deliveryNotes: str | None = None
    customerLatitude: float | None = None
    customerLongitude: float | None = None
    paymentMethod: str
    itemsTotal: MoneyResponse
    deliveryPrice: MoneyResponse
    totalAmount: MoneyResponse
    status: str
    statusHistory: list[StatusHistoryEntryResponse] = Field(default_factory=list)
    items: list[OrderItemResponse] = Field(default_factory=list)
    createdAt: datetime
    updatedAt: datetime


class OrderPlacedResponse(BaseModel):
    orderId: str
    orderNumber: str
    status: str
    itemsTotal: MoneyResponse
    deliveryPrice: MoneyResponse
    totalAmount: MoneyResponse


class OrderListResponse(BaseModel):
    orders: list[OrderResponse] = Field(default_factory=list)
    nextCursor: str | None = None


class DeliveryQuoteResponse(BaseModel):
    available: bool
    distanceKm: float | None = None
    deliveryPrice: MoneyResponse | None = None
