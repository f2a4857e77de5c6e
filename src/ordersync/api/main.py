from __future__ import annotations

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ordersync.api.dependencies import build_backend
from ordersync.api.error_handling import register_exception_handlers
from ordersync.api.middleware.request_id import RequestIDMiddleware
from ordersync.api.routes.delivery import router as delivery_router
from ordersync.api.routes.health import router as health_router
from ordersync.api.routes.metrics import router as metrics_router
from ordersync.api.routes.orders import router as orders_router
from ordersync.api.ws.manager import ConnectionManager
from ordersync.api.ws.routes import router as ws_router
from ordersync.infrastructure.messaging.change_fanout import start_change_fanout
from ordersync.infrastructure.observability.logging_config import configure_logging
from ordersync.infrastructure.observability.otel import configure_otel, shutdown_otel

logger = logging.getLogger("ordersync.api.access")

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "route", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "route"],
)


def _cors_allow_origins() -> list[str]:
    env = os.getenv("APP_ENV", "dev").lower()
    if env in {"dev", "test"}:
        return ["*"]

    raw_value = os.getenv("CORS_ALLOW_ORIGINS", "")
    return [origin.strip() for origin in raw_value.split(",") if origin.strip()]


def _route_label(request: Request) -> str:
    # Label by route template so order ids do not explode metric cardinality.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            _observe_request(request, status_code, time.perf_counter() - started)


def _observe_request(request: Request, status_code: int, elapsed: float) -> None:
    route = _route_label(request)
    REQUEST_COUNT.labels(method=request.method, route=route, status_code=str(status_code)).inc()
    REQUEST_LATENCY.labels(method=request.method, route=route).observe(elapsed)
    fields = {
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "duration_ms": round(elapsed * 1000, 2),
    }
    if status_code >= 500:
        logger.warning("request_failed", extra=fields)
    else:
        logger.info("request_complete", extra=fields)


@asynccontextmanager
async def lifespan(app: FastAPI):
    backend = build_backend()
    app.state.backend = backend
    app.state.ws_manager = ConnectionManager()
    fanout_task = asyncio.create_task(start_change_fanout(app.state, backend.change_feed))
    app.state.change_fanout_task = fanout_task
    logger.info("app_started", extra={"reason": backend.name})
    try:
        yield
    finally:
        fanout_task.cancel()
        with suppress(asyncio.CancelledError):
            await fanout_task
        shutdown_otel()


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Ordersync Backend", version="0.1.0", lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(orders_router)
    app.include_router(delivery_router)
    app.include_router(ws_router)

    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_allow_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

    configure_otel(app)
    return app


app = create_app()
