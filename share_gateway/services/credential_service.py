"""Issue and recover per-share password credentials held in the caller's session."""

from __future__ import annotations

import enum
from collections.abc import MutableMapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from share_gateway.core.exceptions import DecodeError
from share_gateway.core.logging import get_logger
from share_gateway.core.metrics import CREDENTIAL_RECOVERIES_TOTAL, SHARE_UNLOCKS_TOTAL
from share_gateway.core.security import SessionCipher, utcnow
from share_gateway.schemas.session import EncryptedPair, SessionCredential

logger = get_logger(__name__)


class CredentialStatus(str, enum.Enum):
    RECOVERED = "recovered"
    ABSENT = "absent"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CredentialResult:
    """Outcome of the password gate. Only RECOVERED carries a password."""

    status: CredentialStatus
    password: str | None = None

    @property
    def recovered(self) -> bool:
        return self.status is CredentialStatus.RECOVERED


NO_CREDENTIAL = CredentialResult(CredentialStatus.ABSENT)


def issue_credential(
    store: MutableMapping[str, Any],
    key: str,
    password: str,
    cipher: SessionCipher,
    ttl_minutes: int = 60,
    now: datetime | None = None,
) -> EncryptedPair:
    """Seal ``password`` for ``key`` and store it in the session.

    The password is not checked here; the backend accepts or rejects it the
    next time the share is resolved.
    """
    expires = (now or utcnow()) + timedelta(minutes=ttl_minutes)
    credential = SessionCredential(password=password, expires=expires)
    pair = cipher.encrypt(credential.model_dump_json())
    store[key] = pair.model_dump()
    SHARE_UNLOCKS_TOTAL.inc()
    return pair


def recover_password(
    store: MutableMapping[str, Any] | None,
    key: str | None,
    cipher: SessionCipher,
    now: datetime | None = None,
) -> CredentialResult:
    """Recover the password stored for ``key``, failing open to no password.

    Never raises: missing slots, undecryptable pairs, unreadable payloads and
    expired credentials all yield a result without a password.
    """
    result = _recover(store, key, cipher, now or utcnow())
    CREDENTIAL_RECOVERIES_TOTAL.labels(outcome=result.status.value).inc()
    return result


def _recover(
    store: MutableMapping[str, Any] | None,
    key: str | None,
    cipher: SessionCipher,
    now: datetime,
) -> CredentialResult:
    if not store or not key:
        return NO_CREDENTIAL
    slot = store.get(key)
    if not slot:
        return NO_CREDENTIAL

    try:
        pair = EncryptedPair.model_validate(slot)
        credential = SessionCredential.model_validate_json(cipher.decrypt(pair))
    except (ValidationError, DecodeError):
        logger.debug("Ignoring unreadable session credential", extra={"share_key": key})
        return CredentialResult(CredentialStatus.INVALID)

    if credential.expires <= now:
        return CredentialResult(CredentialStatus.EXPIRED)
    return CredentialResult(CredentialStatus.RECOVERED, password=credential.password)
