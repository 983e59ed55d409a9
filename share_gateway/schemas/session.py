from __future__ import annotations

from pydantic import AwareDatetime, BaseModel, field_validator


class EncryptedPair(BaseModel):
    """Opaque transport form of a sealed credential, stored per share key in the session."""

    iv: str
    cr: str


class SessionCredential(BaseModel):
    password: str
    expires: AwareDatetime


class UnlockRequest(BaseModel):
    key: str | None = None
    password: str = ""

    @field_validator("password", mode="before")
    @classmethod
    def null_password_is_empty(cls, value: object) -> object:
        return "" if value is None else value
