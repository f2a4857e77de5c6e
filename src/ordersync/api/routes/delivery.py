from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ordersync.api.dependencies import OrderingBackend, get_backend
from ordersync.application.dto.requests import DeliveryQuoteRequest, GeoPointRequest
from ordersync.application.dto.responses import DeliveryQuoteResponse
from ordersync.application.use_cases.quote_delivery import QuoteDelivery
from ordersync.domain.order.entities import GeoPoint

router = APIRouter()


def _geo_point(point: GeoPointRequest) -> GeoPoint:
    return GeoPoint(latitude=point.latitude, longitude=point.longitude)


@router.post("/v1/delivery/quote", response_model=DeliveryQuoteResponse)
async def quote_delivery(
    request_dto: DeliveryQuoteRequest,
    backend: OrderingBackend = Depends(get_backend),
) -> DeliveryQuoteResponse:
    try:
        origin = _geo_point(request_dto.origin)
        destination = _geo_point(request_dto.destination)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    use_case = QuoteDelivery(quoter=backend.quoter, pricing=backend.pricing)
    return await use_case.execute(origin=origin, destination=destination)
