"""Media analysis tool: fetch a file by URL and describe or read it.

Plain-text types are returned directly (truncated). Images and
documents are passed to the model gateway for analysis.
"""

import logging
from typing import Any

import httpx

from aios.orchestrator.agent.tools.core import ToolContext, ToolResultModel, _err, _ok

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 30.0
MAX_TEXT_CHARS = 8000

IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/svg+xml",
}
DOCUMENT_TYPES = {
    "application/pdf",
    "text/plain",
    "text/csv",
    "text/markdown",
    "text/html",
}
TEXT_SHORTCUT_TYPES = {"text/plain", "text/csv", "text/markdown"}

EXT_TO_MIME = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "csv": "text/csv",
    "md": "text/markdown",
    "html": "text/html",
    "htm": "text/html",
}

DEFAULT_ANALYSIS_PROMPT = (
    "Analyze this file thoroughly. For images, describe everything you see in detail. "
    "For documents, summarize the content and extract key information."
)


class AnalyzeMediaResult(ToolResultModel):
    url: str | None = None
    mime_type: str | None = None
    content: str | None = None
    analysis: str | None = None
    note: str | None = None


def mime_from_url(url: str) -> str | None:
    """Infer a MIME type from the URL's file extension."""
    path = url.split("?", 1)[0].split("#", 1)[0]
    last = path.rsplit("/", 1)[-1]
    if "." not in last:
        return None
    return EXT_TO_MIME.get(last.rsplit(".", 1)[-1].lower())


async def analyze_media_tool(
    args: dict[str, Any],
    ctx: ToolContext,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AnalyzeMediaResult:
    """Fetch and analyze a file at a URL.

    Args:
        args: Dict with 'url' and optional 'prompt'.
        ctx: Tool context carrying the model gateway.
        transport: Optional httpx transport (tests).

    Returns:
        AnalyzeMediaResult with text content or a model analysis.
    """
    url = str(args.get("url", "")).strip()
    if not url.startswith(("http://", "https://")):
        return _err(AnalyzeMediaResult, "A public http(s) URL is required.")

    try:
        async with httpx.AsyncClient(
            timeout=FETCH_TIMEOUT_SECONDS, follow_redirects=True, transport=transport
        ) as client:
            resp = await client.get(url, headers={"User-Agent": "AIOS-MediaTool/1.0"})
    except httpx.TimeoutException:
        return _err(AnalyzeMediaResult, "Could not fetch URL: request timed out.", url=url)
    except httpx.HTTPError as e:
        return _err(AnalyzeMediaResult, f"Could not fetch URL: {e}", url=url)

    if resp.status_code >= 400:
        return _err(
            AnalyzeMediaResult,
            f"URL responded with {resp.status_code} {resp.reason_phrase}",
            url=url,
        )

    content_type = resp.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    mime_type = content_type or mime_from_url(url) or "application/octet-stream"

    if mime_type in TEXT_SHORTCUT_TYPES:
        text = resp.text
        note = None
        if len(text) > MAX_TEXT_CHARS:
            note = f"Content truncated to {MAX_TEXT_CHARS} chars (full size: {len(text)})"
        return _ok(
            AnalyzeMediaResult,
            url=url,
            mime_type=mime_type,
            content=text[:MAX_TEXT_CHARS],
            note=note,
        )

    if mime_type not in IMAGE_TYPES and mime_type not in DOCUMENT_TYPES:
        return _err(
            AnalyzeMediaResult,
            f'Unsupported file type "{mime_type}". '
            "Supported: JPEG, PNG, GIF, WebP, SVG, BMP, PDF, TXT, CSV, Markdown, HTML.",
            url=url,
            mime_type=mime_type,
        )

    if ctx.gateway is None:
        return _err(AnalyzeMediaResult, "Media analysis is not available right now.", url=url)

    prompt = str(args.get("prompt") or "").strip() or DEFAULT_ANALYSIS_PROMPT
    try:
        analysis = await ctx.gateway.analyze_media(prompt, mime_type, resp.content)
    except Exception as e:
        logger.warning("Media analysis failed for %s: %s", url, e)
        return _err(
            AnalyzeMediaResult,
            f"Model could not analyze this file: {e}",
            url=url,
            mime_type=mime_type,
        )
    return _ok(AnalyzeMediaResult, url=url, mime_type=mime_type, analysis=analysis)
