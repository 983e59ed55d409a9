"""Prometheus metrics middleware for HTTP request tracking."""

from __future__ import annotations

import re
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from share_gateway.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
    HTTP_RESPONSE_SIZE_BYTES,
)

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
FIXED_SHARE_SEGMENTS = {"healthcheck", "unlock", "photo", "video"}
KNOWN_TOP_LEVEL = {"", "share", "healthcheck", "metrics"}


def normalize_path(path: str) -> str:
    """Normalize path for metrics labels to avoid cardinality explosion.

    Asset ids become ``{id}``, share keys become ``{key}`` and any path
    outside the gateway's routes collapses to ``/{other}``.
    """
    path = UUID_PATTERN.sub("{id}", path)
    parts = path.split("/")

    if len(parts) < 2 or parts[1] not in KNOWN_TOP_LEVEL:
        return "/{other}"

    if len(parts) >= 3 and parts[1] == "share" and parts[2]:
        if parts[2] in ("photo", "video"):
            if len(parts) >= 4:
                parts[3] = "{key}"
        elif parts[2] not in FIXED_SHARE_SEGMENTS:
            parts[2] = "{key}"

    return "/".join(parts)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests."""

    EXCLUDED_PATHS = {"/metrics", "/healthcheck", "/share/healthcheck"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path

        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        normalized_path = normalize_path(path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=normalized_path).inc()

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=normalized_path).observe(
                duration
            )
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=normalized_path).dec()
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=normalized_path, status=str(status_code)
            ).inc()

        response_size = response.headers.get("content-length")
        if response_size:
            HTTP_RESPONSE_SIZE_BYTES.labels(method=method, endpoint=normalized_path).observe(
                int(response_size)
            )

        return response
