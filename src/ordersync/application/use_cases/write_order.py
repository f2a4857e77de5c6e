from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ordersync.application.metrics.order_lifecycle import (
    record_compensation,
    record_write_failure,
)
from ordersync.application.ports.repositories import AtomicOrderStore, OrderStore, StoreError
from ordersync.domain.common.ids import OrderId
from ordersync.domain.order.entities import Order, OrderDraft

logger = logging.getLogger(__name__)

ORDER_ROW_STAGE = "order_row"
ORDER_ITEMS_STAGE = "order_items"


class OrderWriteError(Exception):
    stage = "unknown"
    retryable = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.details = {"stage": self.stage, "retryable": self.retryable}


class OrderRowWriteError(OrderWriteError):
    """The order row was not written; nothing was persisted."""

    stage = ORDER_ROW_STAGE


class OrderItemsWriteError(OrderWriteError):
    """The order row was written but its items were not.

    A compensating delete of the order row was attempted; ``compensated``
    reports whether it went through.
    """

    stage = ORDER_ITEMS_STAGE

    def __init__(self, order_id: OrderId, compensated: bool) -> None:
        super().__init__(f"order {order_id} items could not be written")
        self.order_id = order_id
        self.compensated = compensated
        self.details = {**self.details, "compensated": compensated}


@dataclass(frozen=True)
class WrittenOrder:
    order: Order

    @property
    def order_id(self) -> OrderId:
        return self.order.order_id

    @property
    def order_number(self) -> str:
        return self.order.order_number


class OrderWriter:
    def __init__(
        self,
        order_store: OrderStore,
        compensation_attempts: int = 3,
        compensation_delay_seconds: float = 0.1,
    ) -> None:
        self._order_store = order_store
        self._compensation_attempts = max(1, compensation_attempts)
        self._compensation_delay_seconds = compensation_delay_seconds

    async def write(self, draft: OrderDraft) -> WrittenOrder:
        if isinstance(self._order_store, AtomicOrderStore):
            return await self._write_atomically(self._order_store, draft)

        try:
            persisted = await self._order_store.insert_order(draft.order)
        except StoreError as exc:
            record_write_failure(ORDER_ROW_STAGE)
            logger.warning(
                "order_row_write_failed",
                extra={"order_number": draft.order.order_number},
                exc_info=True,
            )
            raise OrderRowWriteError("order could not be written") from exc

        try:
            await self._order_store.insert_items(draft.items)
        except StoreError as exc:
            record_write_failure(ORDER_ITEMS_STAGE)
            logger.warning(
                "order_items_write_failed",
                extra={"order_id": str(persisted.order_id)},
                exc_info=True,
            )
            compensated = await self._compensate(persisted.order_id)
            raise OrderItemsWriteError(
                order_id=persisted.order_id,
                compensated=compensated,
            ) from exc

        return WrittenOrder(order=persisted)

    async def _write_atomically(self, store: AtomicOrderStore, draft: OrderDraft) -> WrittenOrder:
        try:
            persisted = await store.insert_order_with_items(draft.order, draft.items)
        except StoreError as exc:
            record_write_failure(ORDER_ROW_STAGE)
            logger.warning(
                "order_write_failed",
                extra={"order_number": draft.order.order_number},
                exc_info=True,
            )
            raise OrderRowWriteError("order could not be written") from exc
        return WrittenOrder(order=persisted)

    async def _compensate(self, order_id: OrderId) -> bool:
        for attempt in range(1, self._compensation_attempts + 1):
            try:
                await self._order_store.delete_order(order_id)
            except StoreError:
                logger.warning(
                    "order_compensation_failed",
                    extra={"order_id": str(order_id), "attempt": attempt},
                    exc_info=True,
                )
                if attempt < self._compensation_attempts:
                    await asyncio.sleep(self._compensation_delay_seconds)
                continue
            record_compensation(succeeded=True)
            logger.info("order_compensated", extra={"order_id": str(order_id)})
            return True

        record_compensation(succeeded=False)
        logger.error("order_orphan_suspected", extra={"order_id": str(order_id)})
        return False
