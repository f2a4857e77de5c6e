from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from ordersync.application.metrics.order_lifecycle import record_notification
from ordersync.application.notifications.expiry import ExpiryTimers
from ordersync.application.notifications.notifiers import Notifier
from ordersync.domain.common.ids import OrderId
from ordersync.domain.order.entities import Order

logger = logging.getLogger(__name__)

HIGHLIGHT_SECONDS = 30.0


@dataclass(frozen=True)
class NotificationRecord:
    order_id: OrderId
    first_seen_at: datetime
    dismissed_at: datetime | None = None
    acknowledged: bool = False


class NotificationPipeline:
    """Fires every notifier once per new order id for this session.

    The seen set is checked and updated before any notifier runs, so a second
    delivery path for the same order (direct insert event, resync) is dropped
    even while the first one is still awaiting a device. Notifiers run side by
    side: a step waiting on user consent never holds back the others.

    Orders that were only acknowledged (present when the view was first
    loaded) still ring when a live insert event arrives for them: such an
    event was published after the subscription existed, so the order is new.
    """

    def __init__(
        self,
        notifiers: Sequence[Notifier],
        highlight_seconds: float = HIGHLIGHT_SECONDS,
        timers: ExpiryTimers | None = None,
    ) -> None:
        self._notifiers = list(notifiers)
        self._highlight_seconds = highlight_seconds
        self._timers = timers or ExpiryTimers()
        self._records: dict[OrderId, NotificationRecord] = {}
        self._highlighted: set[OrderId] = set()

    @property
    def records(self) -> dict[OrderId, NotificationRecord]:
        return dict(self._records)

    def has_seen(self, order_id: OrderId) -> bool:
        return order_id in self._records

    def acknowledge_existing(self, order_ids: Iterable[OrderId]) -> None:
        """Mark orders as seen without notifying, e.g. the initial snapshot."""
        now = datetime.now(timezone.utc)
        for order_id in order_ids:
            self._records.setdefault(
                order_id,
                NotificationRecord(order_id=order_id, first_seen_at=now, acknowledged=True),
            )

    async def handle_new_order(self, order: Order, live: bool = False) -> bool:
        record = self._records.get(order.order_id)
        if record is not None and not (live and record.acknowledged):
            logger.debug("notification_duplicate_skipped", extra={"order_id": str(order.order_id)})
            return False

        self._records[order.order_id] = NotificationRecord(
            order_id=order.order_id,
            first_seen_at=datetime.now(timezone.utc),
        )
        self._highlight(order.order_id)

        await asyncio.gather(*(self._deliver(notifier, order) for notifier in self._notifiers))

        logger.info(
            "new_order_notified",
            extra={"order_id": str(order.order_id), "order_number": order.order_number},
        )
        return True

    async def _deliver(self, notifier: Notifier, order: Order) -> None:
        try:
            await notifier.notify(order)
        except Exception:
            record_notification(notifier.channel, succeeded=False)
            logger.warning(
                "notification_delivery_failed",
                extra={"order_id": str(order.order_id), "channel": notifier.channel},
                exc_info=True,
            )
            return
        record_notification(notifier.channel, succeeded=True)

    def is_highlighted(self, order_id: OrderId) -> bool:
        return order_id in self._highlighted

    def dismiss(self, order_id: OrderId) -> None:
        self._timers.cancel(order_id)
        self._highlighted.discard(order_id)
        record = self._records.get(order_id)
        if record is not None and record.dismissed_at is None:
            self._records[order_id] = replace(record, dismissed_at=datetime.now(timezone.utc))

    def close(self) -> None:
        self._timers.cancel_all()
        self._highlighted.clear()

    def _highlight(self, order_id: OrderId) -> None:
        self._highlighted.add(order_id)
        try:
            self._timers.schedule(
                order_id,
                self._highlight_seconds,
                lambda: self._highlighted.discard(order_id),
            )
        except RuntimeError:
            # No running loop: the highlight stays until dismissed.
            logger.debug("notification_highlight_timer_unavailable", extra={"order_id": str(order_id)})
