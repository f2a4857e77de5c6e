from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from ordersync.domain.order.events import ChangeKind, OrderChange


class ChangeSubscription(Protocol):
    def __aiter__(self) -> AsyncIterator[OrderChange]: ...

    async def aclose(self) -> None: ...


class ChangeFeed(Protocol):
    async def subscribe(self, kinds: frozenset[ChangeKind]) -> ChangeSubscription: ...


class ChangeFeedError(Exception):
    pass
