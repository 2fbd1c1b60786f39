"""Request tracing middleware: correlation IDs, tenant scope and report timing."""

import time
import uuid
from collections.abc import Callable
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gaming_analytics.core.config import settings

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
DURATION_HEADER = "X-Report-Duration-Ms"


def client_ip(request: Request) -> str:
    """Caller address, preferring the first proxy hop."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if real_ip := request.headers.get("X-Real-IP"):
        return real_ip
    return request.client.host if request.client else "unknown"


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Bind request context into structlog for the lifetime of a request.

    Every log line written while a report is computed carries the
    correlation ID, the request ID and the tenant the report is scoped to.
    Reports slower than ``SLOW_REPORT_MS`` are logged at warning level.
    """

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request_id = uuid.uuid4().hex[:8]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=client_ip(request),
        )
        if tenant_id := request.query_params.get("tenant_id"):
            structlog.contextvars.bind_contextvars(tenant_id=tenant_id)

        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception as e:
            logger.exception("request_failed", error_type=type(e).__name__, duration_ms=_elapsed_ms(started))
            raise

        duration_ms = _elapsed_ms(started)
        if duration_ms >= settings.SLOW_REPORT_MS:
            logger.warning("slow_request", status_code=response.status_code, duration_ms=duration_ms)
        else:
            logger.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[DURATION_HEADER] = str(duration_ms)
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
