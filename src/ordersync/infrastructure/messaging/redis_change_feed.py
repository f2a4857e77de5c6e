from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator

from redis import asyncio as redis_asyncio
from redis.exceptions import RedisError

from ordersync.application.mappers.event_envelope import (
    InvalidEnvelopeError,
    change_channel,
    parse_change_event,
)
from ordersync.application.ports.change_feed import ChangeFeedError
from ordersync.domain.order.events import ChangeKind, OrderChange

logger = logging.getLogger(__name__)


def _decode_value(value: bytes | str | None, errors: str = "strict") -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors)
    return value


class RedisChangeSubscription:
    def __init__(
        self,
        client: redis_asyncio.Redis,
        pubsub: redis_asyncio.client.PubSub,
        kinds: frozenset[ChangeKind],
        currency: str,
    ) -> None:
        self._client = client
        self._pubsub = pubsub
        self._kinds = kinds
        self._currency = currency
        self._closed = False

    def __aiter__(self) -> AsyncIterator[OrderChange]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[OrderChange]:
        while not self._closed:
            try:
                message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except (OSError, RedisError) as exc:
                raise ChangeFeedError("redis change feed connection lost") from exc
            if message is None:
                await asyncio.sleep(0.05)
                continue

            try:
                payload = _decode_value(message.get("data"))
                if not payload:
                    continue
                change = parse_change_event(payload, self._currency)
            except (InvalidEnvelopeError, UnicodeDecodeError):
                logger.warning(
                    "change_feed_invalid_message",
                    extra={"channel": _decode_value(message.get("channel"), errors="replace")},
                    exc_info=True,
                )
                continue
            if change.kind in self._kinds:
                yield change

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._pubsub.aclose()
        await self._client.aclose()


class RedisChangeFeed:
    """Change feed over Redis pub/sub.

    Pub/sub keeps no backlog: anything published while a subscriber is away
    is gone, which is why sync clients resync after every reconnect.
    """

    def __init__(
        self,
        currency: str,
        branch_id: str | None = None,
        redis_url: str | None = None,
    ) -> None:
        self._currency = currency
        self._branch_id = branch_id
        self._redis_url = redis_url

    async def subscribe(self, kinds: frozenset[ChangeKind]) -> RedisChangeSubscription:
        redis_url = self._redis_url or os.getenv("REDIS_URL")
        if not redis_url:
            raise ChangeFeedError("REDIS_URL is not set")

        client = redis_asyncio.from_url(redis_url)
        pubsub = client.pubsub()
        try:
            if self._branch_id is not None:
                channel = change_channel(self._branch_id)
                await pubsub.subscribe(channel)
            else:
                channel = change_channel("*")
                await pubsub.psubscribe(channel)
        except (OSError, RedisError) as exc:
            await pubsub.aclose()
            await client.aclose()
            raise ChangeFeedError("redis change feed subscribe failed") from exc

        logger.info("change_feed_subscribed", extra={"channel": channel})
        return RedisChangeSubscription(client, pubsub, kinds, self._currency)
