from __future__ import annotations

import os
from dataclasses import dataclass

from fastapi import Request

from ordersync.application.ports.change_feed import ChangeFeed
from ordersync.application.ports.distance import DistanceQuoter
from ordersync.application.ports.repositories import MenuAvailabilityRepository, OrderStore
from ordersync.application.use_cases.quote_delivery import DeliveryPricing
from ordersync.infrastructure.db.repositories.menu_repo import SqlAlchemyMenuAvailabilityRepository
from ordersync.infrastructure.db.repositories.order_store import SqlAlchemyOrderStore
from ordersync.infrastructure.geo.geoapify import GeoapifyDistanceQuoter
from ordersync.infrastructure.memory.order_store import (
    InMemoryChangeFeed,
    InMemoryMenuAvailability,
    InMemoryOrderStore,
)
from ordersync.infrastructure.messaging.change_publisher import ChangePublisher
from ordersync.infrastructure.messaging.redis_change_feed import RedisChangeFeed
from ordersync.infrastructure.messaging.redis_publisher import RedisEventPublisher
from ordersync.tools.seed import SEED_MENU_ITEMS


@dataclass
class OrderingBackend:
    name: str
    currency: str
    order_store: OrderStore
    menu_repository: MenuAvailabilityRepository
    change_feed: ChangeFeed
    quoter: DistanceQuoter
    pricing: DeliveryPricing


def order_currency() -> str:
    return os.getenv("ORDER_CURRENCY", "LYD").upper()


def build_backend() -> OrderingBackend:
    currency = order_currency()
    name = os.getenv("ORDER_STORE_BACKEND", "sql").lower()

    if name == "memory":
        feed = InMemoryChangeFeed(currency)
        order_store: OrderStore = InMemoryOrderStore(currency, changes=ChangePublisher(feed))
        menu_repository: MenuAvailabilityRepository = InMemoryMenuAvailability(
            (str(item["id"]), bool(item["is_available"])) for item in SEED_MENU_ITEMS
        )
        change_feed: ChangeFeed = feed
    elif name == "sql":
        order_store = SqlAlchemyOrderStore(
            currency,
            changes=ChangePublisher(RedisEventPublisher()),
        )
        menu_repository = SqlAlchemyMenuAvailabilityRepository()
        change_feed = RedisChangeFeed(currency)
    else:
        raise RuntimeError(f"unknown ORDER_STORE_BACKEND: {name}")

    return OrderingBackend(
        name=name,
        currency=currency,
        order_store=order_store,
        menu_repository=menu_repository,
        change_feed=change_feed,
        quoter=GeoapifyDistanceQuoter(),
        pricing=DeliveryPricing.from_env(currency),
    )


def get_backend(request: Request) -> OrderingBackend:
    return request.app.state.backend
