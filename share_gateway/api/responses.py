"""Bodyless responses shared by routes and exception handlers."""

from __future__ import annotations

from fastapi import Response
from fastapi.responses import RedirectResponse

from share_gateway.core.config import get_settings


def invalid_response(status_code: int = 404) -> Response:
    """Empty response for any rejected request.

    ``INVALID_RESPONSE`` may replace the status code or redirect elsewhere.
    """
    override = (get_settings().invalid_response or "").strip()
    if override.isdigit():
        return Response(status_code=int(override))
    if override:
        return RedirectResponse(override, status_code=302)
    return Response(status_code=status_code)


def add_response_headers(response: Response) -> Response:
    for name, value in get_settings().response_headers.items():
        response.headers[name] = value
    return response
