"""Shared Redis client backing the report cache.

One pool per process, created lazily by the first report that touches the
cache (or by the lifespan warm-up). Callers treat every error from here as
a cache miss.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

import redis.asyncio as aioredis
from redis.asyncio import ConnectionPool
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from gaming_analytics.core.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis
else:
    Redis = object  # type: ignore[misc,assignment]

logger = logging.getLogger(__name__)

_client: "Redis | None" = None
_pool: ConnectionPool | None = None
_init_lock = asyncio.Lock()


def _build_client() -> tuple["Redis", ConnectionPool]:
    pool = ConnectionPool.from_url(
        str(settings.REDIS_URL),
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_keepalive=True,
        health_check_interval=30,
    )
    # A slow cache must not hold up a report, so retry only briefly
    client = aioredis.Redis(
        connection_pool=pool,
        retry=Retry(ExponentialBackoff(cap=0.5), retries=1),
        retry_on_error=[aioredis.ConnectionError, aioredis.TimeoutError],
    )
    return client, pool


async def get_redis() -> "Redis":
    """Return the process-wide Redis client, connecting on first use.

    Raises:
        redis.exceptions.RedisError: Redis is unreachable; the next call tries again
    """
    global _client, _pool

    async with _init_lock:
        if _client is None:
            client, pool = _build_client()
            try:
                await client.ping()
            except Exception:
                logger.exception("Could not connect to Redis at %s:%s", settings.REDIS_HOST, settings.REDIS_PORT)
                await pool.disconnect()
                raise
            _client, _pool = client, pool
            logger.info("Report cache connected (max_connections=%s)", settings.REDIS_MAX_CONNECTIONS)

    return _client


async def close_redis() -> None:
    """Drop the shared client and release its pool."""
    global _client, _pool

    client, pool = _client, _pool
    _client, _pool = None, None

    if client is not None:
        try:
            await client.aclose()
        except Exception:
            logger.exception("Error closing Redis client")

    if pool is not None:
        try:
            await pool.disconnect()
        except Exception:
            logger.exception("Error closing Redis pool")
        else:
            logger.info("Report cache disconnected")
