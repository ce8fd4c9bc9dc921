"""
Custom middleware for mfa_service

Includes:
- Request ID propagation (X-Request-ID) for log correlation
- HTTP metrics collection for Prometheus monitoring
"""
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from mfa_service import metrics

logger = logging.getLogger(__name__)

STATIC_PATHS = {"/", "/health", "/metrics", "/docs", "/openapi.json", "/redoc"}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Reuse the caller's X-Request-ID or mint one, expose it on request.state
    and echo it on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class HTTPMetricsMiddleware(BaseHTTPMiddleware):
    """
    Count requests and observe latency per method and normalized endpoint.

    User ids in paths (/v1/mfa/required/<uuid>) are collapsed so the label
    set stays bounded.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = normalize_path(request.url.path)

        in_progress = metrics.http_requests_in_progress.labels(method=method, endpoint=endpoint)
        in_progress.inc()
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            metrics.http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            metrics.http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - started
            )
            in_progress.dec()


def normalize_path(path: str) -> str:
    """Replace dynamic segments (ids, uuids, tokens) with placeholders"""
    if path in STATIC_PATHS:
        return path

    normalized = []
    for part in path.split("/"):
        if not part:
            continue
        if normalized and normalized[-1] == "required":
            normalized.append("{user_id}")
        elif part.isdigit():
            normalized.append("{id}")
        elif len(part) == 36 and part.count("-") == 4:
            normalized.append("{uuid}")
        elif len(part) >= 32 and part.isalnum():
            normalized.append("{token}")
        else:
            normalized.append(part)
    return "/" + "/".join(normalized)
