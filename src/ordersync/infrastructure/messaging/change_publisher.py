from __future__ import annotations

import logging

from opentelemetry import trace

from ordersync.api.middleware.request_id import get_request_id
from ordersync.application.mappers.event_envelope import change_channel, serialize_change_event
from ordersync.application.ports.publisher import EventPublisher
from ordersync.domain.order.events import OrderChange

logger = logging.getLogger(__name__)


def _current_trace_id() -> str | None:
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None
    return format(span_context.trace_id, "032x")


class ChangePublisher:
    """Emits committed row changes onto the branch change channel.

    Publishing happens after the store commit and never fails the write;
    subscribers that miss an event heal through resync.
    """

    def __init__(self, publisher: EventPublisher) -> None:
        self._publisher = publisher

    async def publish(self, change: OrderChange) -> None:
        message = serialize_change_event(
            change,
            trace_id=_current_trace_id(),
            request_id=get_request_id(),
        )
        try:
            await self._publisher.publish(change_channel(str(change.branch_id)), message)
        except Exception:
            logger.warning(
                "order_change_publish_failed",
                extra={
                    "order_id": str(change.order_id),
                    "event_type": change.kind.value,
                    "branch_id": str(change.branch_id),
                },
                exc_info=True,
            )
