from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone

from ordersync.application.dto.responses import OrderListResponse
from ordersync.application.mappers.order_mapper import to_order_response
from ordersync.application.ports.repositories import InvalidCursorError, OrderStore
from ordersync.domain.common.ids import BranchId
from ordersync.domain.order.entities import OrderItem
from ordersync.domain.order.status import OrderStatus


class InvalidOrderListQueryError(Exception):
    pass


class InvalidOrderListCursorError(Exception):
    pass


def _as_utc(value: datetime | None) -> datetime | None:
    # Dates without an offset are taken as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class ListOrders:
    def __init__(self, order_store: OrderStore) -> None:
        self._order_store = order_store

    async def execute(
        self,
        branch_id: BranchId | None = None,
        status: str = "all",
        limit: int = 50,
        cursor: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> OrderListResponse:
        normalized_status = status.lower()
        status_filter: OrderStatus | None = None
        if normalized_status != "all":
            try:
                status_filter = OrderStatus(normalized_status)
            except ValueError as exc:
                raise InvalidOrderListQueryError(f"invalid order status: {status}") from exc
        if limit < 1 or limit > 200:
            raise InvalidOrderListQueryError("limit must be between 1 and 200")
        start_date = _as_utc(start_date)
        end_date = _as_utc(end_date)
        if start_date is not None and end_date is not None and start_date > end_date:
            raise InvalidOrderListQueryError("startDate must not be after endDate")

        try:
            orders, next_cursor = await self._order_store.list_orders(
                branch_id=branch_id,
                status=status_filter,
                limit=limit,
                cursor=cursor,
                created_from=start_date,
                created_to=end_date,
            )
        except InvalidCursorError as exc:
            raise InvalidOrderListCursorError("invalid cursor") from exc

        items_by_order: dict[str, list[OrderItem]] = defaultdict(list)
        if orders:
            for item in await self._order_store.list_items([order.order_id for order in orders]):
                items_by_order[str(item.order_id)].append(item)

        return OrderListResponse(
            orders=[
                to_order_response(order, items_by_order.get(str(order.order_id), []))
                for order in orders
            ],
            nextCursor=next_cursor,
        )
