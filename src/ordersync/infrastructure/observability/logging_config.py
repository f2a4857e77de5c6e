from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

from ordersync.api.middleware.request_id import get_request_id

_LOGGING_CONFIGURED = False

# Structured fields copied from ``extra=`` onto the JSON record.
_EXTRA_FIELDS = (
    # http
    "method",
    "path",
    "status_code",
    "duration_ms",
    "error_code",
    # orders
    "order_id",
    "order_number",
    "branch_id",
    "fallback_order_number",
    "dropped_items",
    "unavailable_count",
    "can_proceed",
    "from_status",
    "to_status",
    "status",
    "attempt",
    "attempts",
    # change feed and sync
    "channel",
    "event_type",
    "backoff_seconds",
    "orders",
    "discovered",
    "evicted",
    "reason",
    # notifications
    "asset",
    "tag",
    "title",
    "body",
)


def _trace_fields() -> tuple[str | None, str | None]:
    span = trace.get_current_span()
    span_context = span.get_span_context()
    if not span_context.is_valid:
        return None, None
    return (
        format(span_context.trace_id, "032x"),
        format(span_context.span_id, "016x"),
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        trace_id, span_id = _trace_fields()
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": get_request_id(),
            "trace_id": trace_id,
            "span_id": span_id,
        }

        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging() -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    _LOGGING_CONFIGURED = True
