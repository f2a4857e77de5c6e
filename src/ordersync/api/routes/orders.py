from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from ordersync.api.dependencies import OrderingBackend, get_backend
from ordersync.application.dto.requests import ChangeOrderStatusRequest, PlaceOrderRequest
from ordersync.application.dto.responses import (
    OrderListResponse,
    OrderPlacedResponse,
    OrderResponse,
)
from ordersync.application.use_cases.change_order_status import ChangeOrderStatus
from ordersync.application.use_cases.get_order import GetOrder
from ordersync.application.use_cases.list_orders import ListOrders
from ordersync.application.use_cases.place_order import PlaceOrder
from ordersync.domain.common.ids import BranchId, OrderId

router = APIRouter()


def _place_order_use_case(backend: OrderingBackend) -> PlaceOrder:
    return PlaceOrder(
        order_store=backend.order_store,
        menu_repository=backend.menu_repository,
        currency=backend.currency,
    )


@router.post(
    "/v1/branches/{branch_id}/orders",
    response_model=OrderPlacedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_order(
    branch_id: str,
    request_dto: PlaceOrderRequest,
    backend: OrderingBackend = Depends(get_backend),
) -> OrderPlacedResponse:
    return await _place_order_use_case(backend).execute(
        branch_id=BranchId(branch_id),
        request_dto=request_dto,
    )


@router.get("/v1/orders", response_model=OrderListResponse)
async def list_orders(
    branch_id: str | None = Query(default=None, alias="branchId"),
    status_filter: str = Query(default="all", alias="status"),
    limit: int = Query(default=50),
    cursor: str | None = Query(default=None),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    backend: OrderingBackend = Depends(get_backend),
) -> OrderListResponse:
    return await ListOrders(order_store=backend.order_store).execute(
        branch_id=BranchId(branch_id) if branch_id else None,
        status=status_filter,
        limit=limit,
        cursor=cursor,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/v1/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    backend: OrderingBackend = Depends(get_backend),
) -> OrderResponse:
    return await GetOrder(order_store=backend.order_store).execute(order_id=OrderId(order_id))


@router.post("/v1/orders/{order_id}/status", response_model=OrderResponse)
async def change_order_status(
    order_id: str,
    request_dto: ChangeOrderStatusRequest,
    backend: OrderingBackend = Depends(get_backend),
) -> OrderResponse:
    return await ChangeOrderStatus(order_store=backend.order_store).execute(
        order_id=OrderId(order_id),
        new_status=request_dto.status,
        notes=request_dto.notes,
    )
