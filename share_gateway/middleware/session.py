"""Cookie-backed session layer holding one encrypted credential per share key."""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping
from typing import Any, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from share_gateway.core.security import KeyMaterial, decode_session, encode_session


class SessionStore(MutableMapping[str, Any]):
    """Caller-scoped mapping of ShareKey to encrypted pair.

    Tracks whether it was written to so the cookie is only re-issued when needed.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})
        self.modified = False

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self.modified = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


class ShareSessionMiddleware(BaseHTTPMiddleware):
    """Load the session cookie into ``request.state.session`` and persist changes.

    The cookie is a JWT signed with the per-process session secret, so a
    restart silently drops every session.
    """

    def __init__(
        self,
        app: ASGIApp,
        keys: KeyMaterial,
        cookie_name: str = "session",
        secure: bool = False,
    ) -> None:
        super().__init__(app)
        self.keys = keys
        self.cookie_name = cookie_name
        self.secure = secure

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        raw = request.cookies.get(self.cookie_name)
        data = decode_session(raw, self.keys.session_secret) if raw else {}
        store = SessionStore(data)
        request.state.session = store

        response = await call_next(request)

        if store.modified:
            response.set_cookie(
                key=self.cookie_name,
                value=encode_session(store.to_dict(), self.keys.session_secret),
                httponly=True,
                secure=self.secure,
                samesite="strict",
                path="/",
            )
        return response
