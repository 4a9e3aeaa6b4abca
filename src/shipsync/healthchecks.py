"""Health-check probes for downstream dependencies."""

from __future__ import annotations

import logging

import httpx

__all__ = ["check_flash_express"]

logger = logging.getLogger(__name__)

_TIMEOUT = 2  # seconds, fast-fail for readiness


async def check_flash_express(base_url: str) -> bool:
    """GET the courier API root. Any non-5xx answer counts as reachable."""
    if not base_url:
        return False
    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
            resp = await client.get(base_url)
            return resp.status_code < 500  # noqa: TRY300
    except Exception:
        logger.warning("Flash Express health-check failed", exc_info=True)
        return False
