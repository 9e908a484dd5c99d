"""Per-turn conversation orchestration.

Turns one inbound user message (text, optional history, optional
attachments) into a normalized event sequence:

    {"t": "upload", "uploadKey", "rowCount", "columns", "alreadyExists"}
    {"t": "text", "v": chunk}          {"t": "reasoning", "v": chunk}
    {"t": "searching"}                 {"t": "search_done"}
    {"t": "done"}  or  {"t": "error", "msg": message}

Exactly one terminal event (``done`` or ``error``) ends every stream.
Product-file attachments are parsed and staged before the model is
called, and the prompt is rewritten to carry the upload key so a later
confirmation-code turn can find it.
"""

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from aios.errors import ProductFileError
from aios.orchestrator.agent.config import MAX_STEPS
from aios.orchestrator.agent.events import (
    Finish,
    ReasoningDelta,
    StreamError,
    TextDelta,
    ToolCall,
    ToolResult,
)
from aios.orchestrator.agent.system_prompt import build_system_prompt
from aios.orchestrator.agent.tools import WEB_SEARCH_TOOL, get_all_tool_definitions
from aios.orchestrator.agent.tools.core import ToolContext
from aios.orchestrator.models import Attachment, ConversationMessage
from aios.services.kv_store import KeyValueStore
from aios.services.product_catalog import build_product_catalog, save_catalog
from aios.services.product_files import (
    ProductTable,
    is_product_file,
    parse_product_file,
    render_preview,
)
from aios.services.upload_sessions import stage_upload

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
UPLOAD_BLOCK_TAG = "[PRODUCT_FILE_UPLOADED]"
UPLOAD_KEY_RE = re.compile(r"Upload key:\s*([A-Za-z0-9_-]+)")
DEFAULT_UPLOAD_TEXT = "I've uploaded a product file. Please review it."


@dataclass
class PreparedTurn:
    """Effective prompt and attachments after pre-processing."""

    prompt: str
    attachments: list[Attachment] = field(default_factory=list)
    upload_event: dict[str, Any] | None = None


def build_upload_prompt(
    file_name: str,
    table: ProductTable,
    upload_key: str,
    user_text: str,
) -> str:
    """Render the structured upload block followed by the user's text."""
    columns = table.columns
    return "\n".join(
        [
            UPLOAD_BLOCK_TAG,
            f"File: {file_name}",
            f"Rows: {table.row_count} (including header)",
            f"Columns ({len(columns)}): {', '.join(columns)}",
            f"Upload key: {upload_key}",
            "Preview:",
            render_preview(table.rows),
            "[/PRODUCT_FILE_UPLOADED]",
            "",
            user_text.strip() or DEFAULT_UPLOAD_TEXT,
        ]
    )


def find_pending_upload_key(history: list[ConversationMessage]) -> str | None:
    """Return the upload key from the most recent user message that has one."""
    for message in reversed(history):
        if message.role != "user":
            continue
        match = UPLOAD_KEY_RE.search(message.content or "")
        if match:
            return match.group(1)
    return None


def extract_error_message(err: BaseException) -> str:
    """Best-effort user-facing message from an error or its cause."""
    message = getattr(err, "message", None) or str(err)
    if message:
        return str(message)
    cause = err.__cause__ or err.__context__
    if cause is not None:
        message = getattr(cause, "message", None) or str(cause)
        if message:
            return str(message)
        body = getattr(cause, "body", None) or getattr(cause, "response_body", None)
        if isinstance(body, str) and body:
            return body
    return "Stream error"


def _coerce_history(history: list[Any] | None) -> list[ConversationMessage]:
    return [
        h if isinstance(h, ConversationMessage) else ConversationMessage.model_validate(h)
        for h in (history or [])
    ]


class ConversationOrchestrator:
    """Mediates between one user turn and the model gateway.

    Args:
        gateway: Model gateway with ``stream()`` and ``generate()``.
        store: Key-value store for upload sessions and the catalog.
        mailer: Email sender for quote tools.
        sheets: Spreadsheet client for logging tools.
        web_search: Search client; None disables the webSearch tool.
    """

    def __init__(
        self,
        gateway: Any,
        store: KeyValueStore,
        mailer: Any = None,
        sheets: Any = None,
        web_search: Any = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._mailer = mailer
        self._sheets = sheets
        self._web_search = web_search

    def tool_context(self, user_id: str | None = None) -> ToolContext:
        return ToolContext(
            store=self._store,
            user_id=user_id,
            gateway=self._gateway,
            mailer=self._mailer,
            sheets=self._sheets,
            web_search=self._web_search,
        )

    def _system_prompt(self) -> str:
        return build_system_prompt(web_search_enabled=self._web_search is not None)

    async def _rebuild_catalog(self, rows: list[list[str]]) -> None:
        try:
            catalog = build_product_catalog(rows)
            if catalog is None:
                logger.info("Uploaded file has no SKU column, catalog unchanged")
                return
            await save_catalog(self._store, catalog)
        except Exception as e:
            logger.warning("Catalog rebuild failed: %s", e)

    async def prepare_turn(
        self,
        prompt: str,
        history: list[ConversationMessage],
        attachments: list[Attachment] | None = None,
    ) -> PreparedTurn:
        """Apply attachment pre-processing and pending-upload recovery."""
        remaining = list(attachments or [])
        product = next((a for a in remaining if is_product_file(a.name, a.mime_type)), None)

        if product is not None:
            remaining.remove(product)
            try:
                table = parse_product_file(product.name, product.mime_type, product.raw_bytes())
                staged = await stage_upload(self._store, table.rows)
            except (ProductFileError, ValueError) as e:
                logger.warning("Could not process product file %s: %s", product.name, e)
                note = f"[The attached file {product.name} could not be read: {e}]"
                return PreparedTurn(
                    prompt=f"{note}\n\n{prompt}".strip(),
                    attachments=remaining,
                )

            if not staged.already_exists:
                await self._rebuild_catalog(table.rows)

            return PreparedTurn(
                prompt=build_upload_prompt(product.name, table, staged.upload_key, prompt),
                attachments=remaining,
                upload_event={
                    "t": "upload",
                    "uploadKey": staged.upload_key,
                    "rowCount": table.row_count,
                    "columns": table.columns,
                    "alreadyExists": staged.already_exists,
                },
            )

        if UPLOAD_BLOCK_TAG in prompt:
            return PreparedTurn(prompt=prompt, attachments=remaining)
        pending_key = find_pending_upload_key(history)
        if pending_key:
            prompt = f"[UPLOAD_KEY: {pending_key}]\n{prompt}"
        return PreparedTurn(prompt=prompt, attachments=remaining)

    async def stream_prompt(
        self,
        prompt: str,
        history: list[Any] | None = None,
        attachments: list[Attachment] | None = None,
        user_id: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Run one streaming turn, yielding normalized events in arrival order."""
        bounded = _coerce_history(history)[-HISTORY_LIMIT:]
        try:
            prepared = await self.prepare_turn(prompt, bounded, attachments)
        except Exception as e:
            logger.error("Turn preparation failed", exc_info=True)
            yield {"t": "error", "msg": extract_error_message(e)}
            return
        if prepared.upload_event is not None:
            yield prepared.upload_event

        user_message = ConversationMessage(
            role="user",
            content=prepared.prompt,
            attachments=prepared.attachments or None,
        )
        tools = get_all_tool_definitions(self.tool_context(user_id))

        text_deltas = 0
        try:
            async for event in self._gateway.stream(
                self._system_prompt(), bounded + [user_message], tools, MAX_STEPS
            ):
                if isinstance(event, TextDelta):
                    text_deltas += 1
                    yield {"t": "text", "v": event.text}
                elif isinstance(event, ReasoningDelta):
                    yield {"t": "reasoning", "v": event.text}
                elif isinstance(event, ToolCall):
                    logger.info("Tool call: %s", event.tool_name)
                    if event.tool_name == WEB_SEARCH_TOOL:
                        yield {"t": "searching"}
                elif isinstance(event, ToolResult):
                    logger.info("Tool result: %s", event.tool_name)
                    if event.tool_name == WEB_SEARCH_TOOL:
                        yield {"t": "search_done"}
                elif isinstance(event, Finish):
                    logger.info(
                        "Stream finished, text deltas: %d, reason: %s",
                        text_deltas,
                        event.finish_reason,
                    )
                    if text_deltas == 0:
                        logger.warning("Stream finished with no text from the model")
                    yield {"t": "done"}
                    return
                elif isinstance(event, StreamError):
                    logger.error("Stream error event: %s", event.error)
                    yield {"t": "error", "msg": extract_error_message(event.error)}
                    return
        except Exception as e:
            logger.error("Stream error", exc_info=True)
            yield {"t": "error", "msg": extract_error_message(e)}
            return

        yield {"t": "done"}

    async def stream_product_upload(
        self,
        file_name: str,
        mime_type: str,
        data: bytes,
        history: list[Any] | None = None,
        user_id: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream a turn seeded with one uploaded product file and no text."""
        attachment = Attachment.from_bytes(file_name, mime_type, data)
        async for event in self.stream_prompt("", history, [attachment], user_id):
            yield event

    async def generate_response(
        self,
        prompt: str,
        history: list[Any] | None = None,
        user_id: str | None = None,
    ) -> str:
        """Run one non-streaming turn and return the reply text.

        Raises:
            Exception: Provider errors propagate to the caller.
        """
        bounded = _coerce_history(history)[-HISTORY_LIMIT:]
        prepared = await self.prepare_turn(prompt, bounded)
        messages = bounded + [ConversationMessage(role="user", content=prepared.prompt)]
        tools = get_all_tool_definitions(self.tool_context(user_id))
        return await self._gateway.generate(self._system_prompt(), messages, tools, MAX_STEPS)
