"""Tests for global API error handlers."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from shipsync.api.app import create_app
from shipsync.errors import CourierAPIError, MalformedParameterError


@pytest.mark.anyio()
async def test_validation_error_returns_machine_readable_payload() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/shipments", json={"order_number": "X"})

    assert resp.status_code == 422
    body = resp.json()
    assert body["error_code"] == "INVALID_REQUEST"
    assert body["message"] == "Request validation failed"
    assert body["request_id"]
    assert isinstance(body.get("details"), list)
    assert resp.headers["x-correlation-id"] == body["request_id"]


@pytest.mark.anyio()
async def test_not_found_uses_invalid_request_error_code() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/does-not-exist")

    assert resp.status_code == 404
    body = resp.json()
    assert body["error_code"] == "INVALID_REQUEST"
    assert body["request_id"]


@pytest.mark.anyio()
async def test_unhandled_exception_returns_internal_error_payload() -> None:
    app = create_app()

    @app.get("/__boom")
    async def boom() -> dict[str, str]:
        raise RuntimeError("boom")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/__boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error_code"] == "INTERNAL_ERROR"
    assert body["message"] == "Internal server error"
    assert body["request_id"]


@pytest.mark.anyio()
async def test_malformed_parameter_maps_to_422() -> None:
    app = create_app()

    @app.get("/__malformed")
    async def malformed() -> dict[str, str]:
        raise MalformedParameterError("subParcel", "structured value without a serialisation rule")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/__malformed", headers={"x-correlation-id": "cid-9"})

    assert resp.status_code == 422
    body = resp.json()
    assert body["error_code"] == "MALFORMED_PARAMETER"
    assert body["details"] == {"field": "subParcel"}
    assert body["request_id"] == "cid-9"


@pytest.mark.anyio()
async def test_courier_error_without_code() -> None:
    app = create_app()

    @app.get("/__rejected")
    async def rejected() -> dict[str, str]:
        raise CourierAPIError(None, "non-JSON response (HTTP 200)")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/__rejected")

    assert resp.status_code == 502
    body = resp.json()
    assert body["error_code"] == "COURIER_REJECTED"
    assert body["details"] == {"courier_code": None}
