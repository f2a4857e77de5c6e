from __future__ import annotations

import logging
from datetime import datetime, timezone

from ordersync.application.dto.responses import OrderResponse
from ordersync.application.mappers.order_mapper import to_order_response
from ordersync.application.metrics.order_lifecycle import record_transition
from ordersync.application.ports.repositories import OrderStore, StatusConflictError
from ordersync.application.use_cases.get_order import OrderNotFoundError
from ordersync.domain.common.ids import OrderId
from ordersync.domain.order.status import OrderStatus, OrderTransitionError, can_transition

logger = logging.getLogger(__name__)


class InvalidOrderTransitionError(Exception):
    def __init__(self, current: OrderStatus, requested: OrderStatus) -> None:
        super().__init__(
            f"order is {current.value} and cannot move to {requested.value}; "
            "refresh the order list and try again"
        )
        self.current = current
        self.requested = requested
        self.details = {"currentStatus": current.value, "requestedStatus": requested.value}


class OrderConflictError(Exception):
    pass


class ChangeOrderStatus:
    """Advance an order through the status state machine.

    The transition is checked against the row as last read from the store and
    written with a conditional update on that status, so a concurrent change
    by another staff member turns into a rejected transition instead of a
    double advance.
    """

    def __init__(self, order_store: OrderStore) -> None:
        self._order_store = order_store

    async def execute(
        self,
        order_id: OrderId,
        new_status: OrderStatus,
        notes: str | None = None,
    ) -> OrderResponse:
        order = await self._order_store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"order {order_id} not found")

        now = datetime.now(timezone.utc)
        try:
            updated = order.transition_to(new_status, now=now, notes=notes)
        except OrderTransitionError as exc:
            raise InvalidOrderTransitionError(current=order.status, requested=new_status) from exc

        try:
            persisted = await self._order_store.update_status(
                updated,
                expected_status=order.status,
            )
        except StatusConflictError:
            current = await self._order_store.get_order(order_id)
            if current is None:
                raise OrderNotFoundError(f"order {order_id} not found")
            logger.info(
                "order_status_conflict",
                extra={
                    "order_id": str(order_id),
                    "from_status": order.status.value,
                    "to_status": new_status.value,
                    "status": current.status.value,
                },
            )
            if not can_transition(current.status, new_status):
                raise InvalidOrderTransitionError(current=current.status, requested=new_status)
            raise OrderConflictError(f"order {order_id} status update conflict")

        record_transition(persisted, from_status=order.status, now=now)
        logger.info(
            "order_status_changed",
            extra={
                "order_id": str(order_id),
                "from_status": order.status.value,
                "to_status": persisted.status.value,
            },
        )
        items = await self._order_store.list_items([persisted.order_id])
        return to_order_response(persisted, items)
