"""Request logging middleware with structured output."""

from __future__ import annotations

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from share_gateway.core.logging import clear_request_context, get_logger, set_request_context

logger = get_logger(__name__)

# Accept an upstream proxy's id only when it cannot smuggle anything into the logs
FORWARDED_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{8,64}")


def request_id_for(request: Request) -> str:
    forwarded = request.headers.get("x-request-id", "")
    if FORWARDED_ID_PATTERN.fullmatch(forwarded):
        return forwarded
    return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One structured line per request, tagged with a request id.

    Rejected share requests are expected traffic (scanners, stale links), so
    404s log at INFO; other 4xx at WARNING and 5xx at ERROR. Probe paths only
    log when something goes wrong.
    """

    QUIET_PATHS = {"/healthcheck", "/share/healthcheck", "/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request_id_for(request)
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        path = request.url.path
        log_context = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "client_ip": request.client.host if request.client else "unknown",
        }
        range_header = request.headers.get("range")
        if range_header:
            log_context["range"] = range_header

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            log_context["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
            log_context["error_type"] = type(exc).__name__
            logger.exception("Request raised exception", extra=log_context)
            raise
        finally:
            clear_request_context()

        log_context["status_code"] = response.status_code
        log_context["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)

        if response.status_code >= 500:
            logger.error("Request failed", extra=log_context)
        elif response.status_code == status.HTTP_404_NOT_FOUND:
            logger.info("Request rejected", extra=log_context)
        elif response.status_code >= 400:
            logger.warning("Request error", extra=log_context)
        elif path not in self.QUIET_PATHS:
            log_context["user_agent"] = request.headers.get("user-agent", "unknown")
            logger.info("Request completed", extra=log_context)

        response.headers["X-Request-ID"] = request_id
        return response
