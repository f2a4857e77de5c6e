from __future__ import annotations

import asyncio
import logging
from typing import Any

from ordersync.application.mappers.event_envelope import serialize_change_event
from ordersync.application.ports.change_feed import ChangeFeed, ChangeFeedError
from ordersync.domain.order.events import ALL_CHANGE_KINDS

logger = logging.getLogger(__name__)


async def start_change_fanout(app_state: Any, change_feed: ChangeFeed) -> None:
    """Relay every change event to the websocket clients of its branch."""
    backoff_seconds = 1.0
    while True:
        subscription = None
        try:
            subscription = await change_feed.subscribe(ALL_CHANGE_KINDS)
            logger.info("change_fanout_subscribed")
            backoff_seconds = 1.0

            async for change in subscription:
                await app_state.ws_manager.broadcast(
                    branch_id=str(change.branch_id),
                    message_json_str=serialize_change_event(change),
                )
            raise ChangeFeedError("change feed ended")
        except asyncio.CancelledError:
            logger.info("change_fanout_cancelled")
            raise
        except Exception:
            logger.exception(
                "change_fanout_error",
                extra={"backoff_seconds": backoff_seconds},
            )
            await asyncio.sleep(backoff_seconds)
            backoff_seconds = min(backoff_seconds * 2, 5.0)
        finally:
            if subscription is not None:
                await subscription.aclose()
