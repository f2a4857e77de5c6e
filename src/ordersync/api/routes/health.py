from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ordersync.api.dependencies import OrderingBackend, get_backend
from ordersync.infrastructure.db.session import ping_database
from ordersync.infrastructure.messaging.redis_client import ping_redis

router = APIRouter()


@router.get("/health/live")
def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(
    response: Response,
    backend: OrderingBackend = Depends(get_backend),
) -> dict[str, object]:
    if backend.name == "memory":
        return {"status": "ok", "checks": {"backend": "memory"}}

    postgres_ready = await ping_database(timeout_seconds=1.0)
    redis_ready = await ping_redis(timeout_seconds=1.0)

    if postgres_ready and redis_ready:
        return {"status": "ok"}

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "unavailable",
        "checks": {"postgres": postgres_ready, "redis": redis_ready},
    }
