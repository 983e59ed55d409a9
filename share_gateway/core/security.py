from __future__ import annotations

import base64
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import jwt
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from share_gateway.core.exceptions import DecodeError
from share_gateway.schemas.session import EncryptedPair

logger = logging.getLogger(__name__)

SESSION_ALGORITHM = "HS256"
NONCE_SIZE = 12


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class KeyMaterial:
    """Process-wide secrets, generated once at startup and never rotated.

    Restarting the process invalidates every outstanding session and unlock.
    """

    credential_key: bytes
    session_secret: str

    @classmethod
    def generate(cls) -> KeyMaterial:
        return cls(
            credential_key=AESGCM.generate_key(bit_length=256),
            session_secret=secrets.token_urlsafe(32),
        )


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii")


def _b64decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value.encode("ascii"))


class SessionCipher:
    """AES-256-GCM seal/open of small text payloads into an (iv, cr) pair."""

    def __init__(self, key: bytes) -> None:
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> EncryptedPair:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return EncryptedPair(iv=_b64encode(nonce), cr=_b64encode(sealed))

    def decrypt(self, pair: EncryptedPair) -> str:
        """Open a pair produced by :meth:`encrypt`.

        Raises:
            DecodeError: On bad encoding, wrong nonce length, wrong key or
                any tampering with the ciphertext.
        """
        try:
            nonce = _b64decode(pair.iv)
            sealed = _b64decode(pair.cr)
            return self._aead.decrypt(nonce, sealed, None).decode("utf-8")
        except (ValueError, InvalidTag) as exc:
            # binascii.Error and UnicodeDecodeError are both ValueErrors
            raise DecodeError("Unable to decrypt session credential") from exc


def encode_session(data: dict[str, Any], secret: str) -> str:
    """Sign the session mapping into a cookie value."""
    return jwt.encode({"data": data}, secret, algorithm=SESSION_ALGORITHM)


def decode_session(token: str, secret: str) -> dict[str, Any]:
    """Return the session mapping carried by a cookie, or an empty one if it is not ours."""
    try:
        payload = jwt.decode(token, secret, algorithms=[SESSION_ALGORITHM])
    except jwt.InvalidTokenError:
        logger.debug("Discarding session cookie with invalid signature")
        return {}
    data = payload.get("data")
    return data if isinstance(data, dict) else {}
