"""Web search tool, registered only when VALYU_API_KEY is configured."""

import logging
from typing import Any

from pydantic import BaseModel

from aios.orchestrator.agent.tools.core import ToolContext, ToolResultModel, _err, _ok

logger = logging.getLogger(__name__)


class SearchHit(BaseModel):
    title: str
    url: str
    content: str


class WebSearchResult(ToolResultModel):
    results: list[SearchHit] | None = None


async def web_search_tool(args: dict[str, Any], ctx: ToolContext) -> WebSearchResult:
    """Search the web. A failure lets the model answer without search context."""
    query = str(args.get("query", "")).strip()
    if not query:
        return _err(WebSearchResult, "A search query is required.")
    if ctx.web_search is None:
        return _err(WebSearchResult, "Web search is not available right now.")

    try:
        hits = await ctx.web_search.search(query, max_results=int(args.get("maxResults") or 5))
    except Exception as e:
        logger.warning("Web search failed for %r: %s", query, e)
        return _err(
            WebSearchResult,
            "Web search is unavailable right now. Answer from existing knowledge.",
        )
    return _ok(WebSearchResult, results=[SearchHit(**hit) for hit in hits])
