from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from ordersync.application.mappers.event_envelope import serialize_change_event
from ordersync.application.ports.change_feed import ChangeFeedError
from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import (
    DeliveryMethod,
    DraftLine,
    OrderDraft,
    PaymentMethod,
    create_order_draft,
)
from ordersync.domain.order.events import (
    ALL_CHANGE_KINDS,
    ORDER_KINDS,
    ChangeKind,
    order_inserted,
    order_item_inserted,
)
from ordersync.infrastructure.memory.order_store import InMemoryChangeFeed
from ordersync.infrastructure.messaging.change_publisher import ChangePublisher
from ordersync.infrastructure.messaging.redis_change_feed import RedisChangeSubscription


def _draft() -> OrderDraft:
    return create_order_draft(
        order_id=OrderId("ord_001"),
        order_number="000001",
        branch_id=BranchId("brn_001"),
        restaurant_name="Tripoli Grill",
        customer_name="Salem",
        customer_phone="0912345678",
        delivery_method=DeliveryMethod.PICKUP,
        payment_method=PaymentMethod.CASH,
        lines=[DraftLine(MenuItemId("itm_003"), "Mint Lemonade", Money.from_decimal("8", "LYD"), 1)],
        item_ids=[OrderItemId("oit_001")],
        delivery_price=Money.zero("LYD"),
        now=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    )


class FakePubSub:
    def __init__(self, messages: list[object]) -> None:
        self.messages = list(messages)
        self.closed = False

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout: float = 0.0):
        if not self.messages:
            return None
        message = self.messages.pop(0)
        if isinstance(message, Exception):
            raise message
        return message

    async def aclose(self) -> None:
        self.closed = True


class FakeRedis:
    def __init__(self) -> None:
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


class BrokenPublisher:
    async def publish(self, channel: str, message: str) -> None:
        raise ConnectionError("redis is down")


@pytest.mark.asyncio
async def test_redis_subscription_filters_kinds_and_skips_garbage(caplog) -> None:
    draft = _draft()
    messages = [
        {"type": "pmessage", "channel": b"order-changes:brn_001", "data": b"{broken"},
        {
            "type": "pmessage",
            "channel": b"order-changes:brn_001",
            "data": serialize_change_event(order_item_inserted(draft.items[0], BranchId("brn_001"))).encode(),
        },
        {
            "type": "pmessage",
            "channel": b"order-changes:brn_001",
            "data": serialize_change_event(order_inserted(draft.order)).encode(),
        },
        OSError("connection reset"),
    ]
    pubsub, client = FakePubSub(messages), FakeRedis()
    subscription = RedisChangeSubscription(client, pubsub, ORDER_KINDS, "LYD")

    received = []
    with caplog.at_level(logging.WARNING), pytest.raises(ChangeFeedError):
        async for change in subscription:
            received.append(change)

    assert [change.kind for change in received] == [ChangeKind.ORDER_INSERTED]
    assert received[0].order == draft.order
    assert any(r.getMessage() == "change_feed_invalid_message" for r in caplog.records)

    await subscription.aclose()
    assert pubsub.closed and client.closed


@pytest.mark.asyncio
async def test_redis_subscription_skips_undecodable_bytes(caplog) -> None:
    draft = _draft()
    messages = [
        {"type": "message", "channel": b"order-changes:brn_001", "data": b"\xff\xfe garbage"},
        {
            "type": "message",
            "channel": b"order-changes:brn_001",
            "data": serialize_change_event(order_inserted(draft.order)).encode(),
        },
        OSError("connection reset"),
    ]
    subscription = RedisChangeSubscription(FakeRedis(), FakePubSub(messages), ALL_CHANGE_KINDS, "LYD")

    received = []
    with caplog.at_level(logging.WARNING), pytest.raises(ChangeFeedError):
        async for change in subscription:
            received.append(change)

    assert [change.order for change in received] == [draft.order]
    assert [r.getMessage() for r in caplog.records] == ["change_feed_invalid_message"]


@pytest.mark.asyncio
async def test_memory_feed_delivers_and_drops() -> None:
    draft = _draft()
    feed = InMemoryChangeFeed("LYD")
    subscription = await feed.subscribe(ALL_CHANGE_KINDS)
    publisher = ChangePublisher(feed)

    await publisher.publish(order_inserted(draft.order))
    iterator = subscription.__aiter__()
    first = await asyncio.wait_for(iterator.__anext__(), timeout=1)
    assert first.order == draft.order
    assert feed.published[0][0] == "order-changes:brn_001"

    feed.drop_subscribers()
    with pytest.raises(ChangeFeedError):
        await asyncio.wait_for(iterator.__anext__(), timeout=1)
    assert feed.subscriber_count == 0


@pytest.mark.asyncio
async def test_unavailable_memory_feed_refuses_subscribers() -> None:
    feed = InMemoryChangeFeed("LYD")
    feed.available = False

    with pytest.raises(ChangeFeedError):
        await feed.subscribe(ALL_CHANGE_KINDS)


@pytest.mark.asyncio
async def test_publish_failure_is_logged_not_raised(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        await ChangePublisher(BrokenPublisher()).publish(order_inserted(_draft().order))

    failures = [r for r in caplog.records if r.getMessage() == "order_change_publish_failed"]
    assert len(failures) == 1
    assert failures[0].order_id == "ord_001"
