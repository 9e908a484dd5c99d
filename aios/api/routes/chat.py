"""FastAPI routes for the web chat channel.

Endpoints:
    POST /chat/prompt                      Complete response
    POST /chat/prompt/stream               SSE event stream
    POST /chat/products/upload             Product file upload, SSE
    GET  /chat/rfq/{quote_number}/download Printable quote page
    POST /chat/rfq/followups               Send due follow-up reminders

Streaming endpoints emit one ``data: <json>`` frame per orchestrator
event; every stream ends with exactly one ``done`` or ``error`` frame.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse
from sse_starlette.sse import EventSourceResponse

from aios.api.middleware.prompt_limit import prompt_limiter
from aios.api.schemas import FollowupResponse, PromptRequest, PromptResponse, StreamPromptRequest
from aios.errors import NotFoundError, ValidationError
from aios.orchestrator.conversation import ConversationOrchestrator
from aios.orchestrator.models import ConversationMessage
from aios.services.gateway_provider import get_mailer, get_orchestrator
from aios.services.kv_store import KeyValueStore, get_kv_store
from aios.services.product_files import is_product_file
from aios.services.rfq_service import load_quote, process_due_followups, render_quote_html

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


async def _sse_frames(
    request: Request,
    events: AsyncIterator[dict[str, Any]],
) -> AsyncIterator[dict[str, str]]:
    """Wrap orchestrator events as SSE frames, stopping on client disconnect."""
    async for event in events:
        if await request.is_disconnected():
            logger.info("Client disconnected mid-stream")
            break
        yield {"data": json.dumps(event)}


def _parse_history_field(raw: str | None) -> list[ConversationMessage]:
    """Decode the multipart ``history`` field; malformed input is ignored."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
        return [ConversationMessage.model_validate(item) for item in items]
    except (ValueError, TypeError) as e:
        logger.warning("Ignoring malformed upload history: %s", e)
        return []


@router.post(
    "/prompt",
    response_model=PromptResponse,
    dependencies=[Depends(prompt_limiter)],
)
async def generate_response(
    payload: PromptRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> PromptResponse:
    """Generate a complete response for one prompt."""
    text = await orchestrator.generate_response(payload.prompt)
    return PromptResponse(response=text)


@router.post("/prompt/stream", dependencies=[Depends(prompt_limiter)])
async def stream_response(
    request: Request,
    payload: StreamPromptRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> EventSourceResponse:
    """Stream a response as SSE.

    Event frames carry ``{"t": ...}`` objects: text, reasoning, searching,
    search_done, upload, then a terminal done or error.
    """
    events = orchestrator.stream_prompt(
        payload.prompt,
        history=payload.history,
        attachments=payload.attachments,
    )
    return EventSourceResponse(_sse_frames(request, events), media_type="text/event-stream")


@router.post("/products/upload", dependencies=[Depends(prompt_limiter)])
async def upload_products(
    request: Request,
    file: UploadFile | None = File(None),
    history: str | None = Form(None),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> EventSourceResponse:
    """Upload a product file and stream the assistant's review of it.

    Raises:
        ValidationError: If no file is given or its type is not allowed.
        HTTPException: 413 if the file exceeds 10 MB.
    """
    if file is None or not file.filename:
        raise ValidationError("No file provided")
    if not is_product_file(file.filename, file.content_type):
        raise ValidationError("Only CSV, JSON, and Excel files are allowed")

    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    logger.info("Product upload %s (%d bytes)", file.filename, len(data))
    events = orchestrator.stream_product_upload(
        file.filename,
        file.content_type or "",
        data,
        history=_parse_history_field(history),
    )
    return EventSourceResponse(_sse_frames(request, events), media_type="text/event-stream")


@router.get("/rfq/{quote_number}/download", response_class=HTMLResponse)
async def download_quote(
    quote_number: str,
    store: KeyValueStore = Depends(get_kv_store),
) -> HTMLResponse:
    """Return the printable quote page.

    Raises:
        NotFoundError: If the quote is unknown or has expired.
    """
    quote = await load_quote(store, quote_number)
    if quote is None:
        raise NotFoundError("Quote", quote_number, "Quote not found or has expired.")
    return HTMLResponse(render_quote_html(quote))


@router.post("/rfq/followups", response_model=FollowupResponse)
async def run_followups(
    store: KeyValueStore = Depends(get_kv_store),
) -> FollowupResponse:
    """Send every due follow-up reminder. Safe to call repeatedly."""
    result = await process_due_followups(store, get_mailer())
    logger.info("Follow-up sweep sent %d reminder(s), %d error(s)", result.sent, len(result.errors))
    return FollowupResponse(sent=result.sent, errors=result.errors)
