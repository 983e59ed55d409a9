"""Gateway error taxonomy.

Validation and resolution failures both surface as the same empty 404 so a
client cannot tell a bad key from a missing asset. Credential failures never
leave the password gate. Anything else reaching the generic handler is fatal.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for errors raised by the gateway core."""


class ValidationError(GatewayError):
    """Malformed share key, asset id or size variant."""


class ResolutionError(GatewayError):
    """Share or asset not found, locked, expired, or backend unreachable."""


class CredentialError(GatewayError):
    """Stored session credential could not be recovered."""


class DecodeError(CredentialError):
    """Encrypted pair is malformed, tampered with, or was sealed under another key."""


class StreamingError(GatewayError):
    """The backend media stream failed."""
