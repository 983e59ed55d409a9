from __future__ import annotations

from fastapi import Depends, Request

from share_gateway.core.logging import set_request_context
from share_gateway.core.security import SessionCipher
from share_gateway.middleware.session import SessionStore
from share_gateway.services.credential_service import recover_password
from share_gateway.services.immich_client import ImmichClient


def get_immich_client(request: Request) -> ImmichClient:
    return request.app.state.immich


def get_cipher(request: Request) -> SessionCipher:
    return request.app.state.cipher


def get_session_store(request: Request) -> SessionStore | None:
    return getattr(request.state, "session", None)


async def get_share_password(
    key: str,
    store: SessionStore | None = Depends(get_session_store),
    cipher: SessionCipher = Depends(get_cipher),
) -> str | None:
    """Password gate: the unexpired password this caller unlocked ``key`` with, if any.

    Never fails the request; any problem with the stored credential means
    the share is resolved without a password.
    """
    set_request_context(share_key=key)
    return recover_password(store, key, cipher).password
