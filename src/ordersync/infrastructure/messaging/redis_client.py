from __future__ import annotations

import os
from functools import lru_cache

from redis import asyncio as redis_asyncio
from redis.exceptions import RedisError


def _redis_url() -> str:
    url = os.getenv("REDIS_URL")
    if not url:
        raise RuntimeError("REDIS_URL is not set")
    return url


@lru_cache(maxsize=8)
def _build_client(redis_url: str, timeout_seconds: float) -> redis_asyncio.Redis:
    return redis_asyncio.Redis.from_url(
        redis_url,
        socket_connect_timeout=timeout_seconds,
        socket_timeout=timeout_seconds,
    )


def get_redis_client(timeout_seconds: float = 1.0) -> redis_asyncio.Redis:
    return _build_client(_redis_url(), timeout_seconds)


async def ping_redis(timeout_seconds: float = 1.0) -> bool:
    try:
        return bool(await get_redis_client(timeout_seconds).ping())
    except (OSError, RuntimeError, RedisError):
        return False
