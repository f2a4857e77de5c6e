from __future__ import annotations

from ordersync.application.dto.responses import OrderResponse
from ordersync.application.mappers.order_mapper import to_order_response
from ordersync.application.ports.repositories import OrderStore
from ordersync.domain.common.ids import OrderId


class OrderNotFoundError(Exception):
    pass


class GetOrder:
    def __init__(self, order_store: OrderStore) -> None:
        self._order_store = order_store

    async def execute(self, order_id: OrderId) -> OrderResponse:
        order = await self._order_store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"order {order_id} not found")
        items = await self._order_store.list_items([order.order_id])
        return to_order_response(order, items)
