from __future__ import annotations

import asyncio
import json
import sys
import threading
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from ordersync.api.main import create_app
from ordersync.application.dto.requests import PlaceOrderRequest
from ordersync.application.notifications.pipeline import NotificationPipeline
from ordersync.application.sync.realtime_client import RealtimeSyncClient
from ordersync.application.use_cases.place_order import PlaceOrder
from ordersync.domain.common.ids import BranchId, OrderId
from ordersync.domain.order.entities import Order
from ordersync.domain.order.events import ALL_CHANGE_KINDS, ChangeKind
from ordersync.infrastructure.db.repositories.menu_repo import SqlAlchemyMenuAvailabilityRepository
from ordersync.infrastructure.db.repositories.order_store import SqlAlchemyOrderStore
from ordersync.infrastructure.messaging.change_publisher import ChangePublisher
from ordersync.infrastructure.messaging.redis_change_feed import RedisChangeFeed
from ordersync.infrastructure.messaging.redis_publisher import RedisEventPublisher

PAYLOAD = {
    "restaurantName": "Tripoli Grill",
    "customer": {"name": "Salem", "phone": "0912345678"},
    "deliveryMethod": "pickup",
    "paymentMethod": "cash",
    "items": [{"id": "itm_001", "name": "Chicken Shawarma", "price": "25.50", "quantity": 1}],
}


class RecordingNotifier:
    channel = "recording"

    def __init__(self) -> None:
        self.orders: list[OrderId] = []

    async def notify(self, order: Order) -> None:
        self.orders.append(order.order_id)


def _place_order_use_case(store: SqlAlchemyOrderStore) -> PlaceOrder:
    return PlaceOrder(
        order_store=store,
        menu_repository=SqlAlchemyMenuAvailabilityRepository(),
        currency="LYD",
    )


@pytest.mark.asyncio
async def test_committed_order_reaches_redis_subscribers() -> None:
    feed = RedisChangeFeed("LYD", branch_id="brn_001")
    subscription = await feed.subscribe(ALL_CHANGE_KINDS)
    store = SqlAlchemyOrderStore("LYD", changes=ChangePublisher(RedisEventPublisher()))
    try:
        placed = await _place_order_use_case(store).execute(
            branch_id=BranchId("brn_001"),
            request_dto=PlaceOrderRequest.model_validate(PAYLOAD),
        )

        received = []
        iterator = subscription.__aiter__()
        while len(received) < 2:
            received.append(await asyncio.wait_for(iterator.__anext__(), timeout=5))
    finally:
        await subscription.aclose()

    assert [change.kind for change in received] == [
        ChangeKind.ORDER_INSERTED,
        ChangeKind.ORDER_ITEM_INSERTED,
    ]
    assert all(change.order_id == placed.orderId for change in received)


@pytest.mark.asyncio
async def test_sync_client_announces_orders_from_redis() -> None:
    store = SqlAlchemyOrderStore("LYD", changes=ChangePublisher(RedisEventPublisher()))
    notifier = RecordingNotifier()
    client = RealtimeSyncClient(
        RedisChangeFeed("LYD", branch_id="brn_001"),
        store,
        BranchId("brn_001"),
        pipeline=NotificationPipeline([notifier]),
        backoff_seconds=0.1,
    )

    async with client:
        await client.wait_connected(timeout=5)
        placed = await _place_order_use_case(store).execute(
            branch_id=BranchId("brn_001"),
            request_dto=PlaceOrderRequest.model_validate(PAYLOAD),
        )
        for _ in range(100):
            if notifier.orders:
                break
            await asyncio.sleep(0.05)

    assert notifier.orders == [placed.orderId]
    assert client.view.contains(OrderId(placed.orderId))


def test_websocket_receives_order_inserted_event() -> None:
    with TestClient(create_app()) as client:
        with client.websocket_connect("/ws?branch_id=brn_001&role=kitchen") as websocket:
            assert websocket.receive_json()["event_type"] == "connection.ready"
            message_holder: dict[str, str] = {}
            error_holder: dict[str, Exception] = {}

            def _receive_message() -> None:
                try:
                    message_holder["text"] = websocket.receive_text()
                except Exception as exc:
                    error_holder["error"] = exc

            receiver = threading.Thread(target=_receive_message, daemon=True)
            receiver.start()

            response = client.post("/v1/branches/brn_001/orders", json=PAYLOAD)
            assert response.status_code == 201

            receiver.join(timeout=5.0)
            assert not receiver.is_alive(), "timed out waiting for websocket event"
            assert "error" not in error_holder

            payload = json.loads(message_holder["text"])
            assert payload["event_type"] == "order.inserted"
            assert payload["branch_id"] == "brn_001"
            assert payload["payload"]["id"] == response.json()["orderId"]
