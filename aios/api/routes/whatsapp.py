"""WhatsApp Cloud API webhook routes."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import PlainTextResponse

from aios.orchestrator.conversation import ConversationOrchestrator
from aios.services.channels import handle_whatsapp_message, verify_whatsapp_webhook
from aios.services.gateway_provider import get_orchestrator, get_whatsapp_client
from aios.services.kv_store import KeyValueStore, get_kv_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["whatsapp"])


@router.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    mode: str | None = Query(None, alias="hub.mode"),
    token: str | None = Query(None, alias="hub.verify_token"),
    challenge: str | None = Query(None, alias="hub.challenge"),
) -> PlainTextResponse:
    """Answer the webhook subscription challenge."""
    echoed = verify_whatsapp_webhook(mode, token, challenge)
    if echoed is None:
        return PlainTextResponse("Verification failed", status_code=403)
    return PlainTextResponse(echoed)


@router.post("/webhook", response_class=PlainTextResponse)
async def receive_webhook(
    body: dict[str, Any] = Body(...),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    store: KeyValueStore = Depends(get_kv_store),
) -> PlainTextResponse:
    """Handle an inbound message envelope.

    Always acknowledges with 200 so the Cloud API does not redeliver;
    failures are logged.
    """
    try:
        await handle_whatsapp_message(body, orchestrator, store, get_whatsapp_client())
    except Exception:
        logger.error("Error handling WhatsApp message", exc_info=True)
    return PlainTextResponse("OK")
