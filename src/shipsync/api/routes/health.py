"""Liveness, readiness and Prometheus metrics for the gateway."""

from __future__ import annotations

import time
from collections import Counter

from fastapi import APIRouter, Request, Response
from starlette.responses import JSONResponse

from shipsync.healthchecks import check_flash_express

router = APIRouter()

__all__ = ["router"]

# ──────────── In-process counters ────────────

_STARTED_AT = time.time()
_requests_by_status: Counter[str] = Counter()
_courier_calls: Counter[str] = Counter()
_signatures: Counter[str] = Counter()
_webhooks: Counter[str] = Counter()


def record_request(status: int) -> None:
    """Count one HTTP response; called by the observability middleware."""
    _requests_by_status[str(status)] += 1


def record_courier_call(error_kind: str | None = None) -> None:
    """Count a courier round trip by outcome: ``ok``, ``rejected`` or ``unavailable``."""
    _courier_calls[error_kind or "ok"] += 1


def record_signature() -> None:
    _signatures["preview"] += 1


def record_webhook_rejected() -> None:
    _webhooks["rejected"] += 1


def _family(name: str, kind: str, help_text: str, samples: list[tuple[str, float]]) -> list[str]:
    """One metric family; ``samples`` pairs a label suffix with a value."""
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} {kind}"]
    lines += [f"{name}{labels} {value}" for labels, value in samples]
    return lines


# ──────────── Endpoints ────────────


@router.get("/health", summary="Liveness probe", operation_id="health")
async def health() -> dict[str, str]:
    """Liveness: app process is running."""
    return {"status": "ok"}


@router.get("/ready", summary="Readiness probe", operation_id="ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness: credentials present and the courier API answers.

    200 when both hold, 503 otherwise.
    """
    settings = request.app.state.settings
    checks = {
        "flash_express_credentials": settings.flash_express_configured,
        "flash_express": await check_flash_express(settings.flash_express_base_url),
    }
    is_ready = all(checks.values())
    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={"ready": is_ready, "checks": checks},
    )


@router.get("/metrics", summary="Prometheus metrics", operation_id="metrics")
async def metrics() -> Response:
    """Prometheus text exposition format."""
    courier: Counter[str] = Counter(ok=0)
    courier.update(_courier_calls)
    families = [
        _family("shipsync_up", "gauge", "Service is up", [("", 1)]),
        _family(
            "shipsync_uptime_seconds",
            "gauge",
            "Seconds since process start",
            [("", round(time.time() - _STARTED_AT, 1))],
        ),
        _family(
            "shipsync_requests_total",
            "counter",
            "HTTP responses by status code",
            [(f'{{status="{s}"}}', n) for s, n in sorted(_requests_by_status.items())],
        ),
        _family(
            "shipsync_courier_calls_total",
            "counter",
            "Courier API calls by outcome",
            [(f'{{result="{r}"}}', n) for r, n in sorted(courier.items())],
        ),
        _family(
            "shipsync_signatures_total",
            "counter",
            "Signatures computed for diagnostics",
            [("", _signatures["preview"])],
        ),
        _family(
            "shipsync_webhook_rejected_total",
            "counter",
            "Courier callbacks rejected for a bad sign or merchant",
            [("", _webhooks["rejected"])],
        ),
    ]
    body = "\n\n".join("\n".join(lines) for lines in families) + "\n"
    return Response(content=body, media_type="text/plain; charset=utf-8")
