"""FastAPI middleware for metrics, correlation IDs and request logging."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from reelforge.core.logging import clear_correlation_id, set_correlation_id
from reelforge.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

MEDIA_PATH_PREFIX = "/media/"
METRICS_PATH = "/metrics"

_PROJECT_ID = re.compile(
    r"(dir-video-)?[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)
_CLIENT_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

requests_logger = logging.getLogger("reelforge.requests")


def normalize_path(path: str) -> str:
    """Collapse ids and media files so metric labels stay bounded."""
    if path.startswith(MEDIA_PATH_PREFIX):
        return "/media/{file}"
    return _PROJECT_ID.sub("{id}", path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request count, latency and in-flight requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        method = request.method
        endpoint = normalize_path(request.url.path)
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint)
        in_progress.inc()

        start_time = time.perf_counter()
        status_code = 500  # Unless a response comes back

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - start_time
            )
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=endpoint, status_code=str(status_code)
            ).inc()
            in_progress.dec()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation ID to the request and echoes it on the response.

    A well-formed ``X-Correlation-ID`` from the client is reused; anything
    else is replaced with a fresh UUID.
    """

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        supplied = request.headers.get(self.CORRELATION_ID_HEADER, "")
        if _CLIENT_CORRELATION_ID.match(supplied):
            correlation_id = supplied
        else:
            correlation_id = str(uuid.uuid4())

        set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[self.CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per API request.

    Static media requests are skipped unless ``log_media_requests`` is set.
    Server errors are logged as warnings.
    """

    def __init__(self, app: ASGIApp, log_media_requests: bool = False):
        super().__init__(app)
        self.log_media_requests = log_media_requests

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path == METRICS_PATH or (
            not self.log_media_requests and path.startswith(MEDIA_PATH_PREFIX)
        ):
            return await call_next(request)

        start_time = time.perf_counter()
        context = {
            "method": request.method,
            "path": path,
            "client_ip": request.client.host if request.client else None,
            "content_length": request.headers.get("content-length"),
        }

        try:
            response = await call_next(request)
        except Exception as e:
            requests_logger.error(
                "Request failed",
                extra={**context, "duration_ms": _elapsed_ms(start_time), "error": str(e)},
                exc_info=True,
            )
            raise

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        requests_logger.log(
            level,
            "Request completed",
            extra={
                **context,
                "status_code": response.status_code,
                "duration_ms": _elapsed_ms(start_time),
            },
        )
        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


__all__ = [
    "MetricsMiddleware",
    "CorrelationIdMiddleware",
    "RequestLoggingMiddleware",
    "normalize_path",
]
