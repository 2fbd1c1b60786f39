"""Redis cache for ad-hoc report results.

The cache is advisory: every Redis error is logged and treated as a miss,
so a report is computed from the store whenever Redis misbehaves.
"""

import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from gaming_analytics.core.config import settings
from gaming_analytics.db.redis import get_redis

logger = logging.getLogger(__name__)

REPORT_KEY_PREFIX = "analytics:report"


def report_cache_key(report: str, **params: Any) -> str:
    """Cache key for one report and its query parameters.

    Parameters that are None are dropped so ``tenant_id=None`` and an omitted
    tenant share a key.
    """
    canonical = json.dumps(
        {name: str(value) for name, value in params.items() if value is not None and not callable(value)},
        sort_keys=True,
    )
    digest = hashlib.md5(canonical.encode(), usedforsecurity=False).hexdigest()
    return f"{REPORT_KEY_PREFIX}:{report}:{digest}"


async def cache_get(key: str) -> Any | None:
    """Decoded report payload stored under ``key``, or None on a miss or Redis error."""
    try:
        redis = await get_redis()
        raw = await redis.get(key)
    except Exception:
        logger.exception("Report cache read failed for %s", key)
        return None

    if raw is None:
        logger.debug("Report cache miss: %s", key)
        return None
    logger.debug("Report cache hit: %s", key)
    return json.loads(raw)


async def cache_set(key: str, value: Any, ttl: int | None = None) -> bool:
    """Store a JSON-serializable report payload for ``ttl`` seconds.

    ``ttl`` defaults to REPORT_CACHE_TTL; zero disables caching. Returns
    whether the payload was written.
    """
    ttl = settings.REPORT_CACHE_TTL if ttl is None else ttl
    if ttl <= 0:
        return False

    try:
        redis = await get_redis()
        await redis.setex(key, ttl, json.dumps(value, default=str))
    except Exception:
        logger.exception("Report cache write failed for %s", key)
        return False

    logger.debug("Report cached: %s for %ss", key, ttl)
    return True


async def cached_report(
    report: str,
    compute: Callable[[], Awaitable[Any]],
    ttl: int | None = None,
    **params: Any,
) -> Any:
    """Return the cached result of ``report`` for ``params`` or compute and cache it.

    Errors from ``compute`` propagate and nothing is cached.

    Example:
        data = await cached_report(
            "ggr", lambda: calculate_ggr(store, window, tenant_id), tenant_id=tenant_id
        )
    """
    key = report_cache_key(report, **params)

    hit = await cache_get(key)
    if hit is not None:
        return hit

    result = await compute()
    await cache_set(key, result, ttl)
    return result
