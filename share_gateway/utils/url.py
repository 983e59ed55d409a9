"""URL helpers for building absolute links behind a reverse proxy."""

from __future__ import annotations

from fastapi import Request


def get_base_url(request: Request) -> str:
    """Return the externally visible base URL of the gateway.

    Public share gateways normally sit behind a TLS-terminating proxy, so
    ``X-Forwarded-Proto`` / ``X-Forwarded-Host`` win over the socket the
    request actually arrived on.

    Args:
        request: Incoming request

    Returns:
        Base URL without trailing slash (e.g. "https://photos.example.com")
    """
    forwarded_proto = request.headers.get("x-forwarded-proto")
    forwarded_host = request.headers.get("x-forwarded-host") or request.headers.get("host")

    if forwarded_proto and forwarded_host:
        # The first entry belongs to the client-facing proxy
        return f"{forwarded_proto.split(',')[0].strip()}://{forwarded_host.split(',')[0].strip()}"

    return str(request.base_url).rstrip("/")
