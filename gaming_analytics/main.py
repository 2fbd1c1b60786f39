"""FastAPI application for the analytics reporting service."""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gaming_analytics.api import analytics, health
from gaming_analytics.core.config import settings
from gaming_analytics.db.redis import close_redis, get_redis
from gaming_analytics.db.session import engine
from gaming_analytics.middleware.request_tracing import RequestTracingMiddleware
from gaming_analytics.services.snapshot_worker import start_snapshot_worker, stop_snapshot_worker


def configure_logging(debug: bool = settings.DEBUG) -> None:
    """JSON event logs on stdout; request context comes from contextvars."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()


async def _shutdown_step(name: str, step: Callable[[], Awaitable[Any]]) -> None:
    # One failing step must not keep the rest from releasing their resources
    try:
        await step()
    except Exception:
        logger.exception("shutdown_step_failed", step=name)
    else:
        logger.info("shutdown_step_done", step=name)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Warm up the report cache, start the snapshot worker if enabled, and clean up on exit."""
    logger.info(
        "analytics_service_starting",
        app_name=settings.APP_NAME,
        snapshot_worker=settings.SNAPSHOT_WORKER_ENABLED,
    )

    try:
        await get_redis()
    except Exception:
        logger.warning("report_cache_unavailable", detail="reports will be computed on every request")

    if settings.SNAPSHOT_WORKER_ENABLED:
        await start_snapshot_worker()

    yield

    logger.info("analytics_service_stopping")
    await _shutdown_step("snapshot_worker", stop_snapshot_worker)
    await _shutdown_step("redis", close_redis)
    await _shutdown_step("database", engine.dispose)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="GGR/NGR, player, churn, tenant and agent reporting with write-once snapshots",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Added last so it wraps CORS and every route
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)
app.add_middleware(RequestTracingMiddleware)

app.include_router(health.router)
app.include_router(analytics.router)


@app.get("/")
async def root() -> dict[str, str]:
    """Service banner."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "reports": analytics.router.prefix,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gaming_analytics.main:app", host=settings.HOST, port=settings.PORT, reload=settings.RELOAD)
