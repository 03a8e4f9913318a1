"""
File: remindhub/webhooks.py

Project: RemindHub WhatsApp Integration

Purpose:
Inbound webhook endpoint for Qontak / WhatsApp Business deliveries.

Endpoints:
- GET  /webhooks/whatsapp   verification challenge / liveness
- POST /webhooks/whatsapp   normalise payload -> ingest events

Notes:
- Provider retries on non-2xx, so anything we cannot use is acknowledged with 200
- Only an unexpected failure outside per-event handling returns 500
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from remindhub.db import get_db
from remindhub.services.ingest_service import WebhookIngestService
from remindhub.services.normalizer import normalize_payload

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger("webhooks")


@router.get("/whatsapp")
def verify_webhook(request: Request):
    challenge = request.query_params.get("hub.challenge")
    if challenge:
        return PlainTextResponse(challenge)
    return {"status": "ok", "message": "Webhook is active"}


@router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    try:
        raw = await request.body()
        try:
            body = json.loads(raw or b"")
        except ValueError:
            logger.warning("Webhook body is not valid JSON, ignored")
            return {"success": True, "processed": 0}

        # Qontak sends this once when the webhook URL is registered
        if isinstance(body, dict) and body.get("verify_info"):
            logger.info("Webhook verification payload received")
            return {"status": "ok", "verified": True}

        logger.info("Webhook received (%d bytes)", len(raw))
        events = normalize_payload(body)
        # DB writes are blocking, keep them off the event loop
        processed = await run_in_threadpool(WebhookIngestService(db).process_events, events)

        logger.info("Webhook processed %d event(s)", processed)
        return {"success": True, "processed": processed}

    except Exception:
        logger.exception("Webhook processing failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )
