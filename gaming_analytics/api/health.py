"""Health check endpoints.

``/health`` is the liveness probe. The ``/health/db`` and ``/health/redis``
probes report latency so a slow replica shows up before reports time out;
Redis only backs the report cache, so a failing Redis probe does not mean
reports are down.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from gaming_analytics.core.config import settings
from gaming_analytics.db.redis import get_redis
from gaming_analytics.db.session import get_db
from gaming_analytics.services.snapshot_worker import get_snapshot_worker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _probe(name: str, check: Callable[[], Awaitable[Any]], response: Response) -> dict[str, Any]:
    started = time.perf_counter()
    try:
        await check()
    except Exception as e:
        logger.exception("%s health check failed", name)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", name: str(e)}
    return {
        "status": "healthy",
        name: "connected",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness, plus whether this instance runs the snapshot worker."""
    worker = get_snapshot_worker()
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "snapshot_worker": "running" if worker and worker.running else "stopped",
    }


@router.get("/health/db")
async def health_check_db(response: Response, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Round trip to the record store."""
    return await _probe("database", lambda: db.execute(text("SELECT 1")), response)


@router.get("/health/redis")
async def health_check_redis(response: Response) -> dict[str, Any]:
    """Round trip to the report cache."""

    async def ping() -> None:
        redis = await get_redis()
        await redis.ping()

    return await _probe("redis", ping, response)
