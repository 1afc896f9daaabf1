"""
Per-IP request limits for the unauthenticated token endpoints
(approval links, invoice view links, view-link comments).

Windows are counted in Redis with INCR + EXPIRE so every API worker shares
them. When Redis cannot be reached the count falls back to this process.
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

from .config import RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)

REDIS_RECONNECT_DELAY = 60

_redis: Optional[redis.Redis] = None
_reconnect_at = 0.0

# key -> (window_end_epoch, hits)
_local_windows: dict[str, tuple[int, int]] = {}
_local_lock = Lock()


def get_redis_client() -> Optional[redis.Redis]:
    """Shared connection, or None while Redis is down (retried after a delay)"""
    global _redis, _reconnect_at

    if _redis is not None:
        return _redis
    if time.time() < _reconnect_at:
        return None

    try:
        url = os.getenv("REDIS_URL")
        if url:
            client = redis.from_url(url, decode_responses=True, socket_timeout=5)
        else:
            client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD"),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                decode_responses=True,
                socket_timeout=5,
            )
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis unavailable for rate limiting, counting per process: {e}")
        _reconnect_at = time.time() + REDIS_RECONNECT_DELAY
        return None

    logger.info("✅ Redis connected for rate limiting")
    _redis = client
    return _redis


def _hit_redis(client: redis.Redis, key: str, window_seconds: int) -> tuple[int, int]:
    pipe = client.pipeline()
    pipe.incr(key)
    pipe.ttl(key)
    hits, ttl = pipe.execute()
    if ttl < 0:
        client.expire(key, window_seconds)
        ttl = window_seconds
    return int(hits), int(ttl)


def _hit_local(key: str, window_seconds: int) -> tuple[int, int]:
    now = int(time.time())
    with _local_lock:
        window_end, hits = _local_windows.get(key, (0, 0))
        if now >= window_end:
            window_end, hits = now + window_seconds, 0
            # Drop finished windows so the dict stays bounded
            for stale in [k for k, (end, _) in _local_windows.items() if end <= now]:
                del _local_windows[stale]
        hits += 1
        _local_windows[key] = (window_end, hits)
    return hits, window_end - now


def count_request(key: str, window_seconds: int) -> tuple[int, int]:
    """Record one request; returns (hits in the current window, seconds until it resets)"""
    client = get_redis_client()
    if client is not None:
        try:
            return _hit_redis(client, key, window_seconds)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Rate limit counter fell back to memory: {e}")
    return _hit_local(key, window_seconds)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Build a FastAPI dependency allowing `limit` requests per IP per window.

        rate_limit_views = create_rate_limiter(limit=60, window_seconds=60, key_prefix="invoice_view")

        @router.get("/invoice/{token}")
        async def view(token: str, _: None = Depends(rate_limit_views)):
            ...
    """

    async def rate_limiter(request: Request) -> None:
        if not RATE_LIMIT_ENABLED:
            return
        key = f"{key_prefix}:{client_ip(request)}"
        hits, retry_after = count_request(key, window_seconds)
        if hits > limit:
            logger.warning(f"🚫 Rate limit hit for {key} ({hits}/{limit})")
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Try again in {max(retry_after, 1)} seconds.",
                headers={"Retry-After": str(max(retry_after, 1))},
            )

    return rate_limiter
