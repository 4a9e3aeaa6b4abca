"""Flash Express status callback, verified with the request-signing scheme."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from shipsync.api.routes import health
from shipsync.api.routes.shipments import get_flash_client
from shipsync.errors import MalformedParameterError

router = APIRouter()

__all__ = ["router"]

logger = logging.getLogger(__name__)


class WebhookResponse(BaseModel):
    status: str
    message: str


async def _read_fields(request: Request) -> dict[str, Any]:
    """Callback parameters from a form or JSON body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = json.loads(await request.body())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Callback body must be an object")
        return payload
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.post(
    "/webhook/flash-express",
    response_model=WebhookResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive Flash Express parcel status callbacks",
    operation_id="flash_express_webhook",
)
async def flash_express_webhook(request: Request) -> WebhookResponse:
    """Handle a courier callback.

    Flow:
    1. Fail closed when no courier key is configured (503)
    2. Recompute the signature over every field except ``sign``
    3. Check the callback is addressed to our merchant id
    """
    client = get_flash_client(request)
    fields = await _read_fields(request)

    try:
        verified = client.signer.verify(fields)
    except MalformedParameterError as exc:
        # nested or non-finite values cannot have been signed by the courier
        logger.warning("Flash Express callback with unsignable field %s", exc.field)
        verified = False
    if not verified:
        health.record_webhook_rejected()
        logger.warning("Flash Express callback with invalid sign (mchId=%s)", fields.get("mchId"))
        raise HTTPException(status_code=401, detail="Invalid signature")

    if fields.get("mchId") != client.merchant_id:
        health.record_webhook_rejected()
        logger.warning("Flash Express callback for unexpected merchant %s", fields.get("mchId"))
        raise HTTPException(status_code=401, detail="Unknown merchant")

    pno = fields.get("pno", "")
    logger.info("Flash Express callback accepted: pno=%s state=%s", pno, fields.get("state", ""))
    return WebhookResponse(status="accepted", message=f"Callback for {pno or 'parcel'} accepted")
