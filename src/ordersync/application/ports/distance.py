from __future__ import annotations

from typing import Protocol

from ordersync.domain.order.entities import GeoPoint


class DistanceQuoter(Protocol):
    async def quote(self, origin: GeoPoint, destination: GeoPoint) -> float: ...


class DistanceUnavailableError(Exception):
    pass
