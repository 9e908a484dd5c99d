"""Model gateway client over the Anthropic Messages API.

Runs a bounded multi-step tool loop: when a step stops for ``tool_use``
the requested tools are executed server-side through the registry, their
results are appended, and the next step is requested. ``stream()``
yields gateway events as they arrive; ``generate()`` returns the final
text.
"""

import base64
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from aios.orchestrator.agent.config import (
    MAX_STEPS,
    get_max_tokens,
    get_model,
    get_thinking_budget,
)
from aios.orchestrator.agent.events import (
    Finish,
    GatewayEvent,
    ReasoningDelta,
    StreamError,
    TextDelta,
    ToolCall,
    ToolResult,
)
from aios.orchestrator.models import Attachment, ConversationMessage

logger = logging.getLogger(__name__)

ANTHROPIC_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
TEXT_DOCUMENT_TYPES = {"text/plain", "text/csv", "text/markdown", "text/html", "image/svg+xml"}


def _normalize_mime(mime_type: str) -> str:
    mime = (mime_type or "").split(";", 1)[0].strip().lower()
    return "image/jpeg" if mime == "image/jpg" else mime


def media_block(mime_type: str, raw: bytes, name: str | None = None) -> dict[str, Any]:
    """Build an Anthropic content block for binary media.

    Raises:
        ValueError: If the media type cannot be sent to the model.
    """
    mime = _normalize_mime(mime_type)
    if mime in ANTHROPIC_IMAGE_TYPES:
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": mime,
                "data": base64.b64encode(raw).decode("ascii"),
            },
        }
    if mime == "application/pdf":
        return {
            "type": "document",
            "source": {
                "type": "base64",
                "media_type": "application/pdf",
                "data": base64.b64encode(raw).decode("ascii"),
            },
        }
    if mime in TEXT_DOCUMENT_TYPES or mime.startswith("text/"):
        label = f"[{name}]\n" if name else ""
        return {"type": "text", "text": label + raw.decode("utf-8", errors="replace")}
    raise ValueError(f"Unsupported media type for the model: {mime or 'unknown'}")


def _attachment_block(attachment: Attachment) -> dict[str, Any]:
    try:
        return media_block(attachment.mime_type, attachment.raw_bytes(), attachment.name)
    except ValueError as e:
        logger.warning("Dropping attachment %s: %s", attachment.name, e)
        return {"type": "text", "text": f"[Attachment omitted: {attachment.name}]"}


def to_api_messages(messages: list[ConversationMessage]) -> list[dict[str, Any]]:
    """Convert conversation messages to Messages API params.

    Messages with neither text nor attachments are skipped.
    """
    result = []
    for msg in messages:
        if msg.attachments:
            content: Any = [_attachment_block(a) for a in msg.attachments]
            if msg.content:
                content.append({"type": "text", "text": msg.content})
        elif msg.content:
            content = msg.content
        else:
            continue
        result.append({"role": msg.role, "content": content})
    return result


def _block_param(block: Any) -> dict[str, Any] | None:
    """Echo an assistant response block back as a request param."""
    if block.type == "text":
        return {"type": "text", "text": block.text}
    if block.type == "tool_use":
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    if block.type == "thinking":
        return {"type": "thinking", "thinking": block.thinking, "signature": block.signature}
    if block.type == "redacted_thinking":
        return {"type": "redacted_thinking", "data": block.data}
    return None


class ModelGateway:
    """Text generation and streaming with server-side tool execution."""

    def __init__(self, client: AsyncAnthropic | None = None, model: str | None = None) -> None:
        self._client = client or AsyncAnthropic()
        self._model = model or get_model()
        logger.info("AI model activated: %s", self._model)

    @property
    def model(self) -> str:
        return self._model

    def _request_params(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        reasoning: bool,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": get_max_tokens(),
            "system": system,
            "messages": messages,
        }
        if tools:
            params["tools"] = [
                {k: t[k] for k in ("name", "description", "input_schema")} for t in tools
            ]
        budget = get_thinking_budget() if reasoning else 0
        if budget:
            params["thinking"] = {"type": "enabled", "budget_tokens": budget}
            params["max_tokens"] = max(params["max_tokens"], budget + 1024)
        return params

    async def _run_tools(
        self,
        tool_uses: list[Any],
        handlers: dict[str, Any],
    ) -> tuple[list[ToolResult], list[dict[str, Any]]]:
        events: list[ToolResult] = []
        blocks: list[dict[str, Any]] = []
        for use in tool_uses:
            handler = handlers.get(use.name)
            if handler is None:
                payload = {"success": False, "message": f"Unknown tool: {use.name}"}
            else:
                try:
                    result = await handler(dict(use.input or {}))
                    payload = result.to_payload()
                except Exception as e:
                    logger.error("Tool %s raised: %s", use.name, e, exc_info=True)
                    payload = {"success": False, "message": f"Tool {use.name} failed: {e}"}
            events.append(ToolResult(tool_call_id=use.id, tool_name=use.name, output=payload))
            blocks.append(
                {
                    "type": "tool_result",
                    "tool_use_id": use.id,
                    "content": json.dumps(payload, default=str),
                }
            )
        return events, blocks

    async def stream(
        self,
        system: str,
        messages: list[ConversationMessage],
        tools: list[dict[str, Any]],
        max_steps: int = MAX_STEPS,
    ) -> AsyncIterator[GatewayEvent]:
        """Stream one turn as gateway events.

        Yields text and reasoning deltas as they arrive, a ToolCall and a
        ToolResult per executed tool, then exactly one Finish or StreamError.
        """
        api_messages = to_api_messages(messages)
        handlers = {t["name"]: t["handler"] for t in tools}

        for step in range(1, max_steps + 1):
            params = self._request_params(system, api_messages, tools, reasoning=True)
            try:
                async with self._client.messages.stream(**params) as stream:
                    async for event in stream:
                        if event.type != "content_block_delta":
                            continue
                        if event.delta.type == "text_delta":
                            yield TextDelta(event.delta.text)
                        elif event.delta.type == "thinking_delta":
                            yield ReasoningDelta(event.delta.thinking)
                    final = await stream.get_final_message()
            except anthropic.APIError as e:
                yield StreamError(e)
                return

            tool_uses = [b for b in final.content if b.type == "tool_use"]
            if final.stop_reason != "tool_use" or not tool_uses:
                yield Finish(finish_reason=final.stop_reason or "end_turn", steps=step)
                return

            for use in tool_uses:
                yield ToolCall(tool_call_id=use.id, tool_name=use.name, input=dict(use.input or {}))
            results, result_blocks = await self._run_tools(tool_uses, handlers)
            for result in results:
                yield result
            if step == max_steps:
                yield Finish(finish_reason="tool_use", steps=step)
                return

            assistant_blocks = [p for p in map(_block_param, final.content) if p is not None]
            api_messages = api_messages + [
                {"role": "assistant", "content": assistant_blocks},
                {"role": "user", "content": result_blocks},
            ]

    async def generate(
        self,
        system: str,
        messages: list[ConversationMessage],
        tools: list[dict[str, Any]],
        max_steps: int = MAX_STEPS,
    ) -> str:
        """Run the tool loop to completion and return the final text.

        Raises:
            anthropic.APIError: On provider failure.
        """
        api_messages = to_api_messages(messages)
        handlers = {t["name"]: t["handler"] for t in tools}
        text = ""

        for step in range(1, max_steps + 1):
            params = self._request_params(system, api_messages, tools, reasoning=False)
            response = await self._client.messages.create(**params)
            text = "".join(b.text for b in response.content if b.type == "text")
            tool_uses = [b for b in response.content if b.type == "tool_use"]
            if response.stop_reason != "tool_use" or not tool_uses:
                break
            for use in tool_uses:
                logger.info("Tool call: %s", use.name)
            _, result_blocks = await self._run_tools(tool_uses, handlers)
            if step == max_steps:
                break
            assistant_blocks = [p for p in map(_block_param, response.content) if p is not None]
            api_messages = api_messages + [
                {"role": "assistant", "content": assistant_blocks},
                {"role": "user", "content": result_blocks},
            ]

        return text

    async def analyze_media(self, prompt: str, mime_type: str, raw: bytes) -> str:
        """Ask the model to analyze one image or document.

        Raises:
            ValueError: If the media type cannot be sent to the model.
            anthropic.APIError: On provider failure.
        """
        block = media_block(mime_type, raw)
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=get_max_tokens(),
            messages=[{"role": "user", "content": [block, {"type": "text", "text": prompt}]}],
        )
        return "".join(b.text for b in response.content if b.type == "text")
