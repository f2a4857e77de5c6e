from __future__ import annotations

from datetime import datetime, timezone

from prometheus_client import Counter, Histogram

from ordersync.domain.order.entities import Order
from ordersync.domain.order.status import OrderStatus

ORDERS_CREATED_TOTAL = Counter(
    "ordersync_orders_created_total",
    "Total number of orders durably created.",
    ["branch_id", "delivery_method"],
)

ORDER_TRANSITION_TOTAL = Counter(
    "ordersync_order_transition_total",
    "Total number of order lifecycle transitions.",
    ["from", "to"],
)

ORDER_TIME_IN_STATUS_SECONDS = Histogram(
    "ordersync_order_time_to_status_seconds",
    "Time between order creation and reaching a status.",
    ["status"],
)

ORDER_WRITE_FAILURES_TOTAL = Counter(
    "ordersync_order_write_failures_total",
    "Total number of failed order writes by stage.",
    ["stage"],
)

ORDER_COMPENSATIONS_TOTAL = Counter(
    "ordersync_order_compensations_total",
    "Total number of compensating deletes by outcome.",
    ["outcome"],
)

AVAILABILITY_CONFLICTS_TOTAL = Counter(
    "ordersync_availability_conflicts_total",
    "Total number of checkouts blocked by unavailable items.",
    ["branch_id"],
)

NOTIFICATIONS_TOTAL = Counter(
    "ordersync_notifications_total",
    "Total number of new-order notification steps by channel and outcome.",
    ["channel", "outcome"],
)

REALTIME_RESYNCS_TOTAL = Counter(
    "ordersync_realtime_resyncs_total",
    "Total number of full snapshot re-fetches performed by sync clients.",
    ["reason"],
)


def record_order_created(order: Order) -> None:
    ORDERS_CREATED_TOTAL.labels(
        branch_id=str(order.branch_id),
        delivery_method=order.delivery_method.value,
    ).inc()


def record_transition(order: Order, from_status: OrderStatus, now: datetime | None = None) -> None:
    ORDER_TRANSITION_TOTAL.labels(**{"from": from_status.value, "to": order.status.value}).inc()
    current = now or datetime.now(timezone.utc)
    ORDER_TIME_IN_STATUS_SECONDS.labels(status=order.status.value).observe(
        max((current - order.created_at).total_seconds(), 0.0)
    )


def record_write_failure(stage: str) -> None:
    ORDER_WRITE_FAILURES_TOTAL.labels(stage=stage).inc()


def record_compensation(succeeded: bool) -> None:
    ORDER_COMPENSATIONS_TOTAL.labels(outcome="deleted" if succeeded else "failed").inc()


def record_availability_conflict(branch_id: str) -> None:
    AVAILABILITY_CONFLICTS_TOTAL.labels(branch_id=branch_id).inc()


def record_notification(channel: str, succeeded: bool) -> None:
    NOTIFICATIONS_TOTAL.labels(channel=channel, outcome="ok" if succeeded else "failed").inc()


def record_resync(reason: str) -> None:
    REALTIME_RESYNCS_TOTAL.labels(reason=reason).inc()
