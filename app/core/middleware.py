"""
Request middleware: correlation ids and per-request log context.
"""

import time
from typing import Callable

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

# Probes are not worth a log line each
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds method and path into the structlog context and logs timing.

    Everything logged while the request is handled (header reads, table
    creation, row loads) carries the same method, path and request id.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(method=request.method, path=request.url.path)
        start = time.perf_counter()

        logger.info(
            "Request started",
            client_ip=request.client.host if request.client else "unknown",
            content_length=request.headers.get("content-length"),
        )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Request failed", elapsed_ms=_elapsed_ms(start))
            raise
        finally:
            structlog.contextvars.unbind_contextvars("method", "path")

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            elapsed_ms=_elapsed_ms(start),
        )
        return response


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def setup_middleware(app):
    """Install request logging inside the correlation id middleware."""
    # Last added runs outermost, so the request id exists before logging starts
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        update_request_header=True,
    )
