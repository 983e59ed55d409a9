"""Permissive cross-origin headers on every response."""

from __future__ import annotations

from typing import Callable

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware


class PermissiveCORSMiddleware(BaseHTTPMiddleware):
    """Allow any origin and short-circuit every OPTIONS request.

    Unlike Starlette's CORSMiddleware this does not depend on the request
    carrying an Origin header, so plain clients see the same headers.
    """

    ALLOW_ORIGIN = "*"
    ALLOW_METHODS = "GET, POST, OPTIONS"
    ALLOW_HEADERS = "Origin, X-Requested-With, Content-Type, Accept"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=status.HTTP_204_NO_CONTENT)
        else:
            response = await call_next(request)

        response.headers["Access-Control-Allow-Origin"] = self.ALLOW_ORIGIN
        response.headers["Access-Control-Allow-Methods"] = self.ALLOW_METHODS
        response.headers["Access-Control-Allow-Headers"] = self.ALLOW_HEADERS
        return response
