from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from ordersync.application.metrics.order_lifecycle import record_resync
from ordersync.application.notifications.pipeline import NotificationPipeline
from ordersync.application.ports.change_feed import ChangeFeed, ChangeFeedError, ChangeSubscription
from ordersync.application.ports.repositories import OrderStore, StoreError
from ordersync.application.sync.order_view import OrderView
from ordersync.domain.common.ids import BranchId, OrderId
from ordersync.domain.order.entities import Order
from ordersync.domain.order.events import ALL_CHANGE_KINDS, ChangeKind, OrderChange
from ordersync.domain.order.status import OrderStatus, can_transition

logger = logging.getLogger(__name__)

ViewListener = Callable[[OrderView], None]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class SyncGapDetected(Exception):
    """The change feed dropped; events may have been missed until the next resync."""


class RealtimeSyncClient:
    """Keeps an ``OrderView`` of one branch in step with the order store.

    Every (re)connect subscribes first and then re-fetches the latest
    ``snapshot_limit`` orders, so nothing committed between the two is lost;
    duplicates are harmless because the view merge is idempotent. After the
    re-fetch the view holds exactly those orders. The first snapshot only
    marks existing orders as seen. Later snapshots hand orders the view had
    never held to the notification pipeline, as do live insert events.

    Notifications run as their own tasks, so the feed keeps merging while a
    device waits on the user.
    """

    def __init__(
        self,
        change_feed: ChangeFeed,
        order_store: OrderStore,
        branch_id: BranchId,
        pipeline: NotificationPipeline | None = None,
        snapshot_limit: int = 50,
        backoff_seconds: float = 3.0,
        subscribe_timeout_seconds: float = 10.0,
        max_reconnect_attempts: int | None = None,
    ) -> None:
        self._change_feed = change_feed
        self._order_store = order_store
        self._branch_id = branch_id
        self._pipeline = pipeline
        self._snapshot_limit = snapshot_limit
        self._backoff_seconds = backoff_seconds
        self._subscribe_timeout_seconds = subscribe_timeout_seconds
        self._max_reconnect_attempts = max_reconnect_attempts

        self._view = OrderView(branch_id=branch_id)
        self._state = ConnectionState.DISCONNECTED
        self._connected = asyncio.Event()
        self._listeners: list[ViewListener] = []
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._snapshot_taken = False
        self._notifications: set[asyncio.Task[bool]] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def view(self) -> OrderView:
        return self._view

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def check_transition(self, order_id: OrderId, new_status: OrderStatus) -> bool:
        """Local fast path only; the store decides on write."""
        current = self._view.status_of(order_id)
        if current is None:
            return False
        return can_transition(current, new_status)

    async def start(self) -> None:
        if self._task is not None:
            return
        self._closed = False
        self._task = asyncio.create_task(self._run(), name=f"realtime-sync-{self._branch_id}")

    async def wait_connected(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def close(self) -> None:
        self._closed = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        notifications, self._notifications = self._notifications, set()
        for pending in notifications:
            pending.cancel()
        await asyncio.gather(*notifications, return_exceptions=True)
        self._set_state(ConnectionState.DISCONNECTED)

    async def __aenter__(self) -> RealtimeSyncClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _run(self) -> None:
        failures = 0
        while not self._closed:
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._connect_and_consume()
            except SyncGapDetected as exc:
                logger.warning(
                    "sync_gap_detected",
                    extra={"branch_id": str(self._branch_id), "reason": str(exc)},
                )
                failures = 0
            except (ChangeFeedError, StoreError, asyncio.TimeoutError):
                failures += 1
                logger.warning(
                    "realtime_connect_failed",
                    extra={"branch_id": str(self._branch_id), "attempt": failures},
                    exc_info=True,
                )
            except Exception:
                failures += 1
                logger.exception(
                    "realtime_sync_failed",
                    extra={"branch_id": str(self._branch_id), "attempt": failures},
                )

            self._set_state(ConnectionState.DISCONNECTED)
            if self._closed:
                return
            if self._max_reconnect_attempts is not None and failures >= self._max_reconnect_attempts:
                logger.error(
                    "realtime_reconnect_abandoned",
                    extra={"branch_id": str(self._branch_id), "attempts": failures},
                )
                return
            logger.info(
                "realtime_disconnected",
                extra={"branch_id": str(self._branch_id), "backoff_seconds": self._backoff_seconds},
            )
            await asyncio.sleep(self._backoff_seconds)

    async def _connect_and_consume(self) -> None:
        subscription: ChangeSubscription = await asyncio.wait_for(
            self._change_feed.subscribe(ALL_CHANGE_KINDS),
            timeout=self._subscribe_timeout_seconds,
        )
        try:
            await self._resync()
            self._set_state(ConnectionState.CONNECTED)
            logger.info("realtime_connected", extra={"branch_id": str(self._branch_id)})
            try:
                async for change in subscription:
                    if self._closed:
                        return
                    self._handle_change(change)
            except ChangeFeedError as exc:
                raise SyncGapDetected(str(exc) or "change feed failed") from exc
            if not self._closed:
                raise SyncGapDetected("change feed ended")
        finally:
            await subscription.aclose()

    async def _resync(self) -> None:
        orders, _ = await self._order_store.list_orders(
            branch_id=self._branch_id,
            status=None,
            limit=self._snapshot_limit,
            cursor=None,
        )
        items = await self._order_store.list_items([order.order_id for order in orders]) if orders else []
        discovered = self._view.merge_snapshot(orders, items)
        # Rows the store no longer returns (rolled back, or pushed out of the window) go.
        evicted = self._view.retain(order.order_id for order in orders)

        if not self._snapshot_taken:
            self._snapshot_taken = True
            if self._pipeline is not None:
                self._pipeline.acknowledge_existing(order.order_id for order in orders)
            logger.info(
                "realtime_snapshot_loaded",
                extra={"branch_id": str(self._branch_id), "orders": len(orders)},
            )
        else:
            record_resync("reconnect")
            logger.info(
                "realtime_resynced",
                extra={
                    "branch_id": str(self._branch_id),
                    "orders": len(orders),
                    "discovered": len(discovered),
                    "evicted": len(evicted),
                },
            )
            for order in sorted(discovered, key=lambda order: order.created_at):
                if order.status == OrderStatus.PENDING:
                    self._announce(order, live=False)
        self._notify_listeners()

    def _handle_change(self, change: OrderChange) -> None:
        if change.branch_id != self._branch_id:
            return
        applied = self._view.apply(change)
        evicted = self._view.trim(self._snapshot_limit)
        if change.kind == ChangeKind.ORDER_INSERTED and change.order is not None:
            self._announce(change.order, live=True)
        if applied.changed or evicted:
            self._notify_listeners()

    def _announce(self, order: Order, live: bool) -> None:
        """Notify off the merge path so a slow device never stalls the feed."""
        if self._pipeline is None or self._closed:
            return
        task = asyncio.create_task(
            self._pipeline.handle_new_order(order, live=live),
            name=f"notify-{order.order_id}",
        )
        self._notifications.add(task)
        task.add_done_callback(self._notification_done)

    def _notification_done(self, task: asyncio.Task[bool]) -> None:
        self._notifications.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "notification_pipeline_failed",
                extra={"branch_id": str(self._branch_id)},
                exc_info=exc,
            )

    def _notify_listeners(self) -> None:
        if self._closed:
            return
        for listener in list(self._listeners):
            try:
                listener(self._view)
            except Exception:
                logger.exception("realtime_listener_failed", extra={"branch_id": str(self._branch_id)})

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        self._state = state
        if state == ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()
