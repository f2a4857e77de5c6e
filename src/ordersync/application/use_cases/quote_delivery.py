from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ordersync.application.dto.responses import DeliveryQuoteResponse
from ordersync.application.mappers.order_mapper import to_money_response
from ordersync.application.ports.distance import DistanceQuoter, DistanceUnavailableError
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import GeoPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryPricing:
    base_fee: Decimal
    per_km_fee: Decimal
    currency: str

    @classmethod
    def from_env(cls, currency: str) -> DeliveryPricing:
        return cls(
            base_fee=Decimal(os.getenv("DELIVERY_BASE_FEE", "5")),
            per_km_fee=Decimal(os.getenv("DELIVERY_PER_KM_FEE", "1")),
            currency=currency,
        )

    def price_for(self, distance_km: float) -> Money:
        raw = self.base_fee + self.per_km_fee * Decimal(str(distance_km))
        return Money.from_decimal(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP), self.currency)


class QuoteDelivery:
    def __init__(self, quoter: DistanceQuoter, pricing: DeliveryPricing) -> None:
        self._quoter = quoter
        self._pricing = pricing

    async def execute(self, origin: GeoPoint, destination: GeoPoint) -> DeliveryQuoteResponse:
        try:
            distance_km = await self._quoter.quote(origin, destination)
        except DistanceUnavailableError:
            logger.warning("delivery_quote_unavailable", exc_info=True)
            return DeliveryQuoteResponse(available=False)

        return DeliveryQuoteResponse(
            available=True,
            distanceKm=distance_km,
            deliveryPrice=to_money_response(self._pricing.price_for(distance_km)),
        )
