"""FastAPI application factory and error translation."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from shipsync.api.routes import health, shipments, signatures, webhook_flash
from shipsync.couriers.flash_express import FlashExpressClient
from shipsync.errors import (
    ConfigurationError,
    CourierAPIError,
    CourierTransportError,
    MalformedParameterError,
)
from shipsync.logging import bind_correlation_id, configure_logging
from shipsync.settings import Settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

__all__ = ["create_app"]

logger = logging.getLogger(__name__)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    401: "SIGNATURE_INVALID",
    429: "RATE_LIMIT_EXCEEDED",
}


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and count it."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cid = bind_correlation_id(request.headers.get("x-correlation-id"))
        request.state.request_id = cid

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["x-correlation-id"] = cid
        response.headers["x-request-duration-ms"] = f"{elapsed_ms:.1f}"
        health.record_request(response.status_code)
        return response


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", "")
    if not rid:
        rid = bind_correlation_id(request.headers.get("x-correlation-id"))
        request.state.request_id = rid
    return rid


def _error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    *,
    details: Any = None,
) -> JSONResponse:
    """Machine-readable error body shared by every handler."""
    payload: dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "request_id": _request_id(request),
    }
    if details is not None:
        payload["details"] = details
    return JSONResponse(status_code=status_code, content=payload)


async def _on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status_code = exc.status_code
    error_code = _ERROR_CODE_BY_STATUS.get(status_code)
    if error_code is None:
        error_code = "INVALID_REQUEST" if 400 <= status_code < 500 else "INTERNAL_ERROR"
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error_response(request, status_code, error_code, message)


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        request, 422, "INVALID_REQUEST", "Request validation failed", details=exc.errors()
    )


async def _on_configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Shipping provider not configured: %s", exc)
    return _error_response(request, 503, "SHIPPING_NOT_CONFIGURED", str(exc))


async def _on_malformed_parameter(request: Request, exc: MalformedParameterError) -> JSONResponse:
    return _error_response(
        request, 422, "MALFORMED_PARAMETER", str(exc), details={"field": exc.field}
    )


async def _on_courier_rejection(request: Request, exc: CourierAPIError) -> JSONResponse:
    health.record_courier_call("rejected")
    return _error_response(
        request,
        502,
        "COURIER_REJECTED",
        f"Shipping provider rejected the request: {exc.message}",
        details={"courier_code": exc.code},
    )


async def _on_courier_unavailable(request: Request, exc: CourierTransportError) -> JSONResponse:
    health.record_courier_call("unavailable")
    logger.warning("Courier unavailable: %s", exc)
    return _error_response(
        request, 504, "COURIER_UNAVAILABLE", "Shipping provider is unavailable, try again later"
    )


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled application exception", exc_info=exc)
    return _error_response(request, 500, "INTERNAL_ERROR", "Internal server error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = Settings()
    configure_logging(json_output=settings.log_json, level=settings.log_level)

    flash_client: FlashExpressClient | None = None
    if settings.flash_express_configured:
        flash_client = FlashExpressClient.from_settings(settings)
        logger.info(
            "Flash Express client ready (merchant=%s, key=%s, base_url=%s)",
            flash_client.merchant_id,
            flash_client.signer.key_hint,
            settings.flash_express_base_url,
        )
    else:
        # shipping routes answer 503 until credentials are provided
        logger.warning("Flash Express credentials not configured")

    app.state.settings = settings
    app.state.flash_client = flash_client
    try:
        yield
    finally:
        if flash_client is not None:
            await flash_client.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="ShipSync",
        version="0.1.0",
        description="Signed courier API gateway for the back-office dashboard.",
        lifespan=lifespan,
    )
    handlers: list[tuple[type[Exception], Any]] = [
        (StarletteHTTPException, _on_http_error),
        (RequestValidationError, _on_validation_error),
        (ConfigurationError, _on_configuration_error),
        (MalformedParameterError, _on_malformed_parameter),
        (CourierAPIError, _on_courier_rejection),
        (CourierTransportError, _on_courier_unavailable),
        (Exception, _on_unhandled),
    ]
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)
    app.add_middleware(ObservabilityMiddleware)
    app.include_router(health.router, tags=["health"])
    app.include_router(shipments.router, tags=["shipments"])
    app.include_router(signatures.router, tags=["signing"])
    app.include_router(webhook_flash.router, tags=["webhook"])
    return app


app = create_app()
