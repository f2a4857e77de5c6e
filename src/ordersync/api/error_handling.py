from __future__ import annotations

import logging
from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ordersync.api.middleware.request_id import get_request_id
from ordersync.application.ports.repositories import StoreError
from ordersync.application.use_cases.build_order import OrderValidationError
from ordersync.application.use_cases.change_order_status import (
    InvalidOrderTransitionError,
    OrderConflictError,
)
from ordersync.application.use_cases.get_order import OrderNotFoundError
from ordersync.application.use_cases.list_orders import (
    InvalidOrderListCursorError,
    InvalidOrderListQueryError,
)
from ordersync.application.use_cases.reconcile_availability import (
    AvailabilityCheckError,
    AvailabilityConflictError,
)
from ordersync.application.use_cases.write_order import OrderWriteError

logger = logging.getLogger(__name__)


def _error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {
                "error": {
                    "code": code,
                    "message": message,
                    "details": details or {},
                },
                "requestId": get_request_id(),
            }
        ),
    )


def _exception_handler(status_code: int, code: str):
    async def handler(_: Request, exc: Exception) -> JSONResponse:
        details = getattr(exc, "details", None)
        if status_code >= 500:
            logger.warning("request_failed", extra={"error_code": code}, exc_info=exc)
        return _error_response(
            status_code=status_code,
            code=code,
            message=str(exc),
            details=details if isinstance(details, dict) else None,
        )

    return handler


async def _http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    message = str(http_exc.detail) if http_exc.detail else "request failed"
    code = "HTTP_ERROR"
    if http_exc.status_code == 404:
        code = "NOT_FOUND"
    elif http_exc.status_code == 400:
        code = "BAD_REQUEST"
    elif http_exc.status_code == 409:
        code = "CONFLICT"
    return _error_response(
        status_code=http_exc.status_code,
        code=code,
        message=message,
    )


async def _validation_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    return _error_response(
        status_code=400,
        code="INVALID_REQUEST",
        message="request validation failed",
        details={"errors": validation_exc.errors()},
    )


def register_exception_handlers(app: FastAPI) -> None:
    mappings: list[tuple[type[Exception], int, str]] = [
        (OrderValidationError, 422, "ORDER_VALIDATION_FAILED"),
        (AvailabilityConflictError, 409, "AVAILABILITY_CONFLICT"),
        (AvailabilityCheckError, 503, "AVAILABILITY_CHECK_FAILED"),
        (OrderWriteError, 503, "ORDER_WRITE_FAILED"),
        (OrderNotFoundError, 404, "ORDER_NOT_FOUND"),
        (InvalidOrderTransitionError, 409, "INVALID_ORDER_TRANSITION"),
        (OrderConflictError, 409, "CONFLICT"),
        (InvalidOrderListQueryError, 400, "INVALID_ORDER_LIST_QUERY"),
        (InvalidOrderListCursorError, 400, "INVALID_ORDER_LIST_CURSOR"),
        (StoreError, 503, "STORE_UNAVAILABLE"),
    ]

    for exc_cls, status_code, code in mappings:
        app.add_exception_handler(exc_cls, _exception_handler(status_code, code))

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
