"""Web search tool: Brave Search when keyed, DuckDuckGo otherwise."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from ddgs import DDGS

from nova.tools.base import Tool, ToolContext

LOGGER = logging.getLogger(__name__)

BRAVE_URL = "https://api.search.brave.com/res/v1/web/search"
MAX_RESULTS = 5


class WebSearchTool(Tool):
    """Search the web and return titles, URLs and snippets."""

    name = "web_search"
    description = (
        "Search the web for current information. Call this when the user asks about recent events, "
        "facts you're unsure about, or anything that requires up-to-date information."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
        },
        "required": ["query"],
    }
    status_label = "Searching the web…"

    def __init__(self, brave_api_key: str = "") -> None:
        self._brave_api_key = brave_api_key

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        query = str(kwargs["query"]).strip()

        if self._brave_api_key:
            results = await self._brave(query)
            if results:
                return {"results": results, "source": "brave"}

        try:
            hits = await asyncio.to_thread(
                lambda: DDGS().text(query, max_results=MAX_RESULTS, backend="duckduckgo")
            )
        except Exception:  # noqa: BLE001
            LOGGER.warning("DuckDuckGo search failed for %r", query, exc_info=True)
            return {"error": "Web search temporarily unavailable"}

        results = [{"title": r.get("title"), "url": r.get("href"), "snippet": r.get("body")} for r in hits or []]
        if not results:
            return {"message": f'No results for "{query}". I\'ll answer based on my knowledge.', "results": []}
        return {"results": results, "source": "duckduckgo"}

    async def _brave(self, query: str) -> list[dict[str, Any]]:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(
                    BRAVE_URL,
                    params={"q": query, "count": MAX_RESULTS},
                    headers={"X-Subscription-Token": self._brave_api_key, "Accept": "application/json"},
                    timeout=8.0,
                )
        except httpx.HTTPError:
            LOGGER.warning("Brave search request failed; falling back to DuckDuckGo", exc_info=True)
            return []
        if resp.status_code != 200:
            LOGGER.warning("Brave search returned HTTP %s; falling back to DuckDuckGo", resp.status_code)
            return []
        data = resp.json()
        return [
            {"title": r.get("title"), "url": r.get("url"), "snippet": r.get("description")}
            for r in (data.get("web") or {}).get("results", [])
        ]
