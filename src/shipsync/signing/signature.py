"""SHA-256 request signatures for courier APIs."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from typing import Any

from shipsync.errors import ConfigurationError
from shipsync.logging import get_logger, redact_secret
from shipsync.signing.canonical import FLASH_EXPRESS_PROFILE, SigningProfile, canonicalise

__all__ = ["SignedRequestBuilder", "compute_signature", "verify_signature"]

SIGN_FIELD = "sign"

log = get_logger(component="signing")


def _require_secret(secret_key: str) -> None:
    if not secret_key or not secret_key.strip():
        raise ConfigurationError("shipping provider credentials not configured")


def compute_signature(
    fields: Mapping[str, Any],
    secret_key: str,
    profile: SigningProfile = FLASH_EXPRESS_PROFILE,
) -> str:
    """Sign ``fields`` and return the 64-char uppercase hex digest.

    The hashed string is ``canonicalise(fields) + "&key=" + secret_key``.

    Raises:
        ConfigurationError: If ``secret_key`` is empty.
        MalformedParameterError: If a field cannot be canonicalised.
    """
    _require_secret(secret_key)
    canonical = canonicalise(fields, profile)
    digest = hashlib.sha256(f"{canonical}&key={secret_key}".encode()).hexdigest().upper()
    log.debug("signature_computed", canonical=canonical, signature=digest, key=redact_secret(secret_key))
    return digest


def verify_signature(
    fields: Mapping[str, Any],
    secret_key: str,
    signature: str | None = None,
    profile: SigningProfile = FLASH_EXPRESS_PROFILE,
) -> bool:
    """Check a signature against the recomputed one in constant time.

    When ``signature`` is omitted the ``sign`` field of ``fields`` is used.
    """
    expected = signature if signature is not None else fields.get(SIGN_FIELD, "")
    if not expected or not isinstance(expected, str):
        return False
    computed = compute_signature(fields, secret_key, profile)
    return hmac.compare_digest(computed.encode(), expected.upper().encode())


class SignedRequestBuilder:
    """Signs outbound parameter maps with an injected courier key."""

    def __init__(self, secret_key: str, profile: SigningProfile = FLASH_EXPRESS_PROFILE) -> None:
        _require_secret(secret_key)
        self._secret_key = secret_key
        self._profile = profile

    @property
    def profile(self) -> SigningProfile:
        return self._profile

    @property
    def key_hint(self) -> str:
        """Redacted key, safe to log or display."""
        return redact_secret(self._secret_key)

    def __repr__(self) -> str:
        return f"SignedRequestBuilder(key={self.key_hint!r})"

    def canonical_string(self, fields: Mapping[str, Any]) -> str:
        return canonicalise(fields, self._profile)

    def compute_signature(self, fields: Mapping[str, Any]) -> str:
        return compute_signature(fields, self._secret_key, self._profile)

    def verify(self, fields: Mapping[str, Any], signature: str | None = None) -> bool:
        return verify_signature(fields, self._secret_key, signature, self._profile)

    def sign(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``fields`` with the ``sign`` field set."""
        signed = dict(fields)
        signed[SIGN_FIELD] = self.compute_signature(fields)
        return signed
