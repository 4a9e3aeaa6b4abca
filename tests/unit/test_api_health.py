"""Tests for the API health and metrics endpoints."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from shipsync.api.app import create_app
from shipsync.api.routes import health


@pytest.mark.anyio()
async def test_health_returns_ok() -> None:
    app = create_app()
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"


@pytest.mark.anyio()
async def test_health_echoes_correlation_id() -> None:
    app = create_app()
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        resp = await client.get("/health", headers={"x-correlation-id": "cid-123"})
    assert resp.headers["x-correlation-id"] == "cid-123"
    assert "x-request-duration-ms" in resp.headers


@pytest.mark.anyio()
async def test_metrics_exposition() -> None:
    health.record_courier_call()
    health.record_courier_call("rejected")
    health.record_signature()
    health.record_webhook_rejected()

    app = create_app()
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        resp = await client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    text = resp.text
    assert "shipsync_up 1" in text
    assert 'shipsync_courier_calls_total{result="ok"}' in text
    assert 'shipsync_courier_calls_total{result="rejected"}' in text
    assert "shipsync_signatures_total" in text
    assert "shipsync_webhook_rejected_total" in text
