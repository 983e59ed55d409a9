"""Backend client for the Immich shared-link API."""

from __future__ import annotations

import re
from datetime import timezone
from typing import Any

import httpx
from pydantic import ValidationError

from share_gateway.core.logging import get_logger
from share_gateway.core.metrics import BACKEND_UP, SHARE_RESOLUTIONS_TOTAL
from share_gateway.core.security import utcnow
from share_gateway.schemas.share import (
    Album,
    AssetType,
    ShareLookup,
    SharedLink,
    SharedLinkType,
)

logger = get_logger(__name__)

KEY_PATTERN = re.compile(r"[\w-]+", re.ASCII)
ID_PATTERN = re.compile(r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}")

SERVABLE_TYPES = {AssetType.IMAGE.value, AssetType.VIDEO.value}


def is_key(value: str | None) -> bool:
    return bool(value and KEY_PATTERN.fullmatch(value))


def is_id(value: str | None) -> bool:
    return bool(value and ID_PATTERN.fullmatch(value))


def build_params(**params: str | None) -> dict[str, str]:
    """Drop unset query parameters so an empty password is never sent."""
    return {name: value for name, value in params.items() if value}


class ImmichClient:
    """Resolves share keys into shared links and opens asset streams.

    Every call goes to the backend; nothing is cached between requests since
    lock and password state can change at any time.
    """

    def __init__(self, http: httpx.AsyncClient, api_url: str) -> None:
        self._http = http
        self.api_url = api_url.rstrip("/")

    is_key = staticmethod(is_key)
    is_id = staticmethod(is_id)

    async def accessible(self) -> bool:
        """Liveness probe: True when the backend answers its ping."""
        body = await self._get_json("/server/ping")
        up = isinstance(body, dict) and body.get("res") == "pong"
        BACKEND_UP.set(1 if up else 0)
        return up

    async def resolve_share(self, key: str, password: str | None = None) -> ShareLookup:
        """Fetch the current shared link for ``key``.

        Returns an invalid lookup (never raises) when the key is unknown,
        expired, locked behind a password, or the backend is unreachable.
        """
        params = build_params(key=key, password=password)
        try:
            response = await self._http.get(f"{self.api_url}/shared-links/me", params=params)
        except httpx.HTTPError as exc:
            logger.warning(
                "Backend request failed while resolving share",
                extra={"share_key": key, "error": str(exc)},
            )
            SHARE_RESOLUTIONS_TOTAL.labels(outcome="error").inc()
            return ShareLookup(valid=False, key=key)

        body = _json_or_none(response)
        if response.status_code == 401 and isinstance(body, dict):
            if body.get("message") == "Invalid password":
                SHARE_RESOLUTIONS_TOTAL.labels(outcome="password_required").inc()
                return ShareLookup(valid=False, password_required=True, key=key)

        if response.status_code != 200 or not isinstance(body, dict):
            logger.info(
                "Share key not resolved",
                extra={"share_key": key, "status_code": response.status_code},
            )
            SHARE_RESOLUTIONS_TOTAL.labels(outcome="invalid").inc()
            return ShareLookup(valid=False, key=key)

        try:
            link = SharedLink.model_validate(body)
        except ValidationError:
            logger.warning("Backend returned an unreadable shared link", extra={"share_key": key})
            SHARE_RESOLUTIONS_TOTAL.labels(outcome="invalid").inc()
            return ShareLookup(valid=False, key=key)

        if link.expires_at is not None:
            expires_at = link.expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at < utcnow():
                logger.info("Expired share link", extra={"share_key": key})
                SHARE_RESOLUTIONS_TOTAL.labels(outcome="expired").inc()
                return ShareLookup(valid=False, key=key)

        if link.type == SharedLinkType.ALBUM.value and link.album is not None:
            album_body = await self._get_json(f"/albums/{link.album.id}", params)
            if not isinstance(album_body, dict):
                SHARE_RESOLUTIONS_TOTAL.labels(outcome="invalid").inc()
                return ShareLookup(valid=False, key=key)
            try:
                album = Album.model_validate(album_body)
            except ValidationError:
                SHARE_RESOLUTIONS_TOTAL.labels(outcome="invalid").inc()
                return ShareLookup(valid=False, key=key)
            link.assets = album.assets

        link.assets = [asset for asset in link.assets if asset.type in SERVABLE_TYPES]
        SHARE_RESOLUTIONS_TOTAL.labels(outcome="valid").inc()
        return ShareLookup(valid=True, link=link, key=key, password=password or None)

    def asset_url(self, asset_id: str, subpath: str = "") -> str:
        return f"{self.api_url}/assets/{asset_id}{subpath}"

    async def open_stream(
        self,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a GET and return the response with its body still unread.

        The caller owns the response and must ``aclose()`` it.
        """
        request = self._http.build_request("GET", url, params=params, headers=headers)
        return await self._http.send(request, stream=True)

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any | None:
        try:
            response = await self._http.get(f"{self.api_url}{path}", params=params)
        except httpx.HTTPError as exc:
            logger.warning("Backend request failed", extra={"path": path, "error": str(exc)})
            return None
        if response.status_code != 200:
            return None
        return _json_or_none(response)


def _json_or_none(response: httpx.Response) -> Any | None:
    content_type = response.headers.get("content-type", "").lower()
    if "application/json" not in content_type:
        return None
    try:
        return response.json()
    except ValueError:
        return None
