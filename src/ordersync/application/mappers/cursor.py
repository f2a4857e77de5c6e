from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone

from ordersync.application.ports.repositories import InvalidCursorError


def encode_cursor(created_at: datetime, order_id: str) -> str:
    payload = f"{created_at.isoformat()}|{order_id}"
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        created_at_raw, order_id = raw.split("|", 1)
        created_at = datetime.fromisoformat(created_at_raw)
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidCursorError("invalid cursor") from exc
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at, order_id
