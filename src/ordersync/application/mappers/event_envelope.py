from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from ordersync.application.mappers.order_rows import (
    item_from_row,
    item_to_row,
    order_from_row,
    order_to_row,
)
from ordersync.domain.common.ids import BranchId
from ordersync.domain.order.events import ORDER_KINDS, ChangeKind, OrderChange


class InvalidEnvelopeError(Exception):
    pass


def change_channel(branch_id: str) -> str:
    return f"order-changes:{branch_id}"


def serialize_change_event(
    change: OrderChange,
    *,
    occurred_at: datetime | None = None,
    trace_id: str | None = None,
    request_id: str | None = None,
) -> str:
    if change.order is not None:
        table, row = "orders", order_to_row(change.order)
    elif change.item is not None:
        table, row = "order_items", item_to_row(change.item)
    else:
        raise InvalidEnvelopeError(f"{change.kind.value} change carries no row")

    envelope = {
        "event_id": str(uuid4()),
        "event_type": change.kind.value,
        "occurred_at": (occurred_at or datetime.now(timezone.utc)).isoformat(),
        "request_id": request_id,
        "trace_id": trace_id,
        "branch_id": str(change.branch_id),
        "table": table,
        "payload": row,
    }
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)


def parse_change_event(raw: str | bytes, currency: str) -> OrderChange:
    try:
        envelope: dict[str, Any] = json.loads(raw)
        kind = ChangeKind(envelope["event_type"])
        branch_id = BranchId(str(envelope["branch_id"]))
        payload = envelope["payload"]
        if kind in ORDER_KINDS:
            return OrderChange(
                kind=kind,
                branch_id=branch_id,
                order=order_from_row(payload, currency),
            )
        return OrderChange(kind=kind, branch_id=branch_id, item=item_from_row(payload, currency))
    except (ArithmeticError, KeyError, TypeError, ValueError) as exc:
        raise InvalidEnvelopeError(f"invalid change envelope: {exc}") from exc
