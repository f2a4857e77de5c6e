from __future__ import annotations

import logging
import os

import httpx

from ordersync.application.ports.distance import DistanceUnavailableError
from ordersync.domain.order.entities import GeoPoint

logger = logging.getLogger(__name__)

ROUTING_URL = "https://api.geoapify.com/v1/routing"


class GeoapifyDistanceQuoter:
    """Driving distance between two points from the Geoapify routing API."""

    def __init__(
        self,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._api_key = api_key if api_key is not None else os.getenv("GEOAPIFY_API_KEY")
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def quote(self, origin: GeoPoint, destination: GeoPoint) -> float:
        if not self._api_key:
            raise DistanceUnavailableError("GEOAPIFY_API_KEY is not set")

        params = {
            "waypoints": (
                f"{origin.latitude},{origin.longitude}|"
                f"{destination.latitude},{destination.longitude}"
            ),
            "mode": "drive",
            "apiKey": self._api_key,
        }
        try:
            if self._client is not None:
                response = await self._client.get(ROUTING_URL, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                    response = await client.get(ROUTING_URL, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geoapify_request_failed", exc_info=True)
            raise DistanceUnavailableError("routing service unavailable") from exc

        features = payload.get("features") or []
        if not features:
            raise DistanceUnavailableError("no route found")
        distance = (features[0].get("properties") or {}).get("distance")
        if not isinstance(distance, (int, float)):
            raise DistanceUnavailableError("route has no distance")
        return round(distance / 1000, 2)
