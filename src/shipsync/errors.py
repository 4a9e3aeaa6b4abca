"""Error taxonomy shared by the signer, the courier clients and the API."""

from __future__ import annotations

from typing import Any

__all__ = [
    "ShipsyncError",
    "ConfigurationError",
    "MalformedParameterError",
    "CourierError",
    "CourierTransportError",
    "CourierAPIError",
]


class ShipsyncError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ShipsyncError):
    """Required credentials are missing. Fatal, never retried."""


class MalformedParameterError(ShipsyncError):
    """A request field cannot be canonicalised deterministically."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Field '{field}': {reason}")
        self.field = field
        self.reason = reason


class CourierError(ShipsyncError):
    """Raised by the network layer talking to a courier API."""


class CourierTransportError(CourierError):
    """The courier could not be reached (timeout, connection, 5xx)."""


class CourierAPIError(CourierError):
    """The courier answered but rejected the request."""

    def __init__(self, code: Any, message: str) -> None:
        super().__init__(f"Courier rejected request (code={code}): {message}")
        self.code = code
        self.message = message
