"""Diagnostic endpoint: show how a parameter map is canonicalised and signed."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from shipsync.api.routes import health
from shipsync.api.routes.shipments import get_flash_client

router = APIRouter()

__all__ = ["router"]


class SignaturePreviewIn(BaseModel):
    fields: dict[str, Any]


class SignaturePreviewOut(BaseModel):
    canonical: str
    signature: str
    key: str


@router.post(
    "/signatures/preview",
    response_model=SignaturePreviewOut,
    summary="Canonical string and signature for a parameter map",
    operation_id="preview_signature",
)
async def preview_signature(body: SignaturePreviewIn, request: Request) -> SignaturePreviewOut:
    """Compare against a courier "sign verification failed" reply.

    The canonical string is shown without the ``&key=`` suffix.
    """
    signer = get_flash_client(request).signer
    canonical = signer.canonical_string(body.fields)
    signature = signer.compute_signature(body.fields)
    health.record_signature()
    return SignaturePreviewOut(
        canonical=canonical,
        signature=signature,
        key=signer.key_hint,
    )
