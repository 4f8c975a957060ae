"""Redis-backed per-client rate limiting dependency."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Tuple

from fastapi import Request
import redis.asyncio as redis

from config import settings
from services.errors import RateLimitedError

logger = logging.getLogger(__name__)

_local_counters: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()


def client_identifier(request: Request) -> str:
    if settings.RATE_LIMIT_TRUST_FORWARDED_FOR:
        # Only safe behind a proxy that overwrites the header.
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _redis_client(request: Request) -> redis.Redis:
    client = getattr(request.app.state, "redis", None)
    if client is None:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        request.app.state.redis = client
    return client


async def _consume_local_quota(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    async with _local_lock:
        count, reset_at = _local_counters.get(key, (0, now + window_seconds))
        if now >= reset_at:
            count = 0
            reset_at = now + window_seconds
        count += 1
        _local_counters[key] = (count, reset_at)
        return count <= limit


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[[], None]:
    """Return a FastAPI dependency that enforces per-client request quotas."""

    async def _dependency(request: Request):
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key = f"assignly:rate:{prefix}:{client_identifier(request)}"
        try:
            client = _redis_client(request)
            current = await client.incr(key)
            if current == 1:
                await client.expire(key, window_seconds)
            allowed = current <= limit
        except Exception as exc:
            logger.debug("Rate limit store unavailable, counting locally: %s", exc)
            allowed = await _consume_local_quota(key, limit, window_seconds)

        if not allowed:
            raise RateLimitedError()

    return _dependency
