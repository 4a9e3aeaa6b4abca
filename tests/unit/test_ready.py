"""Tests for readiness endpoint with real dependency checks."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from shipsync.api.app import create_app
from shipsync.healthchecks import check_flash_express
from shipsync.settings import Settings


@pytest.fixture()
def app(test_settings: Settings) -> object:
    a = create_app()
    a.state.settings = test_settings
    return a


# ── all healthy ─────────────────────────────────────────


@pytest.mark.anyio()
async def test_ready_all_ok(app: object) -> None:
    with patch("shipsync.api.routes.health.check_flash_express", new_callable=AsyncMock, return_value=True):
        async with AsyncClient(
            transport=ASGITransport(app=app),  # type: ignore[arg-type]
            base_url="http://test",
        ) as client:
            resp = await client.get("/ready")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ready"] is True
    assert body["checks"]["flash_express_credentials"] is True
    assert body["checks"]["flash_express"] is True


# ── courier unreachable ─────────────────────────────────


@pytest.mark.anyio()
async def test_ready_courier_down(app: object) -> None:
    with patch("shipsync.api.routes.health.check_flash_express", new_callable=AsyncMock, return_value=False):
        async with AsyncClient(
            transport=ASGITransport(app=app),  # type: ignore[arg-type]
            base_url="http://test",
        ) as client:
            resp = await client.get("/ready")

    assert resp.status_code == 503
    body = resp.json()
    assert body["ready"] is False
    assert body["checks"]["flash_express"] is False


# ── credentials missing ─────────────────────────────────


@pytest.mark.anyio()
async def test_ready_credentials_missing() -> None:
    app = create_app()
    app.state.settings = Settings(flash_express_merchant_id="AAXXXX", flash_express_api_key="  ")
    with patch("shipsync.api.routes.health.check_flash_express", new_callable=AsyncMock, return_value=True):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/ready")

    assert resp.status_code == 503
    assert resp.json()["checks"]["flash_express_credentials"] is False


# ── probe itself ────────────────────────────────────────


@pytest.mark.anyio()
async def test_check_flash_express_without_url() -> None:
    assert await check_flash_express("") is False
