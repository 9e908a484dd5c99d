"""Valyu web search client used by the ``webSearch`` tool."""

import logging
import os
from typing import Any

import httpx

logger = logging.getLogger(__name__)

VALYU_SEARCH_URL = "https://api.valyu.ai/v1/deepsearch"
_MAX_CONTENT_CHARS = 2000


def get_valyu_api_key() -> str:
    """Return VALYU_API_KEY; empty string disables web search."""
    return os.environ.get("VALYU_API_KEY", "").strip()


class WebSearchClient:
    """Thin async wrapper over the Valyu search endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or get_valyu_api_key()
        self._transport = transport

    async def search(self, query: str, max_results: int = 5) -> list[dict[str, Any]]:
        """Run a search and return ``{title, url, content}`` results.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx response.
        """
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            resp = await client.post(
                VALYU_SEARCH_URL,
                json={"query": query, "max_num_results": max_results, "search_type": "all"},
                headers={"x-api-key": self._api_key},
            )
            resp.raise_for_status()
        results = []
        for item in resp.json().get("results", []):
            results.append(
                {
                    "title": item.get("title", ""),
                    "url": item.get("url", ""),
                    "content": str(item.get("content", ""))[:_MAX_CONTENT_CHARS],
                }
            )
        logger.info("Web search returned %d results", len(results))
        return results
