"""structlog setup for the gateway: correlation ids and credential masking."""

from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from typing import Any

import structlog

__all__ = [
    "bind_correlation_id",
    "configure_logging",
    "correlation_id_var",
    "get_logger",
    "new_correlation_id",
    "redact_secret",
]

# Event keys whose values are credentials
_SENSITIVE_KEYS = frozenset({"api_key", "secret", "secret_key", "authorization", "password"})

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def bind_correlation_id(cid: str | None = None) -> str:
    """Adopt ``cid`` (or a fresh uuid4) as the id of the current request context."""
    cid = cid or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def new_correlation_id() -> str:
    return bind_correlation_id(None)


def redact_secret(secret: str) -> str:
    """Short prefix of a credential, safe to log."""
    if not secret:
        return "<unset>"
    return secret[:4] + "***"


def _inject_correlation_id(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    cid = correlation_id_var.get()
    if cid:
        event_dict.setdefault("correlation_id", cid)
    return event_dict


def _mask_credentials(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for name in _SENSITIVE_KEYS.intersection(event_dict):
        value = event_dict[name]
        event_dict[name] = redact_secret(value) if isinstance(value, str) else "***"
    return event_dict


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    return number if isinstance(number, int) else logging.INFO


def configure_logging(*, json_output: bool = True, level: str = "INFO") -> None:
    """Configure structlog events and stdlib module loggers.

    The courier client, the routes and the exception handlers log through
    ``logging.getLogger(__name__)``; without a root handler their INFO
    records would be dropped, so the stdlib root logger gets the same
    threshold as structlog.

    Args:
        json_output: One JSON object per line (deployments) or the coloured
            console renderer (local runs).
        level: Minimum level name, e.g. ``"DEBUG"`` to see canonical strings.
    """
    threshold = _level_number(level)
    renderer: Any = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _inject_correlation_id,
            _mask_credentials,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=threshold, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def get_logger(**kwargs: Any) -> structlog.BoundLogger:
    """Get a bound logger with optional initial context."""
    return structlog.get_logger(**kwargs)  # type: ignore[no-any-return]
