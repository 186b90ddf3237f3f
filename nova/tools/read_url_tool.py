"""URL fetching and summarization tools."""

from __future__ import annotations

import re
from typing import Any

import httpx

from nova.llm.catalog import internal_model
from nova.tools.base import Tool, ToolContext

_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")

READABLE_CONTENT_TYPES = ("text/html", "text/plain", "application/json")


def html_to_text(html: str, limit: int) -> str:
    """Strip scripts, styles and tags, collapse whitespace and truncate."""

    text = _STYLE_RE.sub("", _SCRIPT_RE.sub("", html))
    text = _SPACE_RE.sub(" ", _TAG_RE.sub(" ", text)).strip()
    return text[:limit]


class WebFetchTool(Tool):
    """Fetch a web page and return its readable text."""

    name = "web_fetch"
    description = (
        "Fetch and extract the main content from a web page URL. Use this when the user shares a "
        "link or asks you to read/summarize a webpage."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "The URL to fetch content from"},
        },
        "required": ["url"],
    }
    status_label = "Fetching web page…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        url = str(kwargs["url"]).strip()
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                resp = await client.get(url, headers={"User-Agent": "Nova-AI/1.0 (web-fetch)"}, timeout=10.0)
        except httpx.HTTPError:
            return {"error": f"Failed to fetch: {url}"}
        if resp.status_code != 200:
            return {"error": f"Failed to fetch URL: {resp.status_code}"}

        content_type = resp.headers.get("content-type", "")
        if not any(kind in content_type for kind in READABLE_CONTENT_TYPES):
            return {"error": f"Unsupported content type: {content_type}"}

        text = html_to_text(resp.text, 4000)
        return {"url": url, "content": text, "length": len(text)}


class SummarizeUrlTool(Tool):
    """Fetch a web page and summarize it with the active model."""

    name = "summarize_url"
    description = (
        "Fetch a web page and provide a concise summary of its content. Use when the user shares a "
        "link and asks for a summary or TL;DR."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "URL to summarize"},
        },
        "required": ["url"],
    }
    status_label = "Summarizing web page…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        url = str(kwargs["url"]).strip()
        if ctx.llm is None:
            return {"error": f"Failed to summarize: {url}"}
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                resp = await client.get(url, headers={"User-Agent": "Nova-AI/1.0 (summarizer)"}, timeout=10.0)
        except httpx.HTTPError:
            return {"error": f"Failed to summarize: {url}"}
        if resp.status_code != 200:
            return {"error": f"Failed to fetch URL: {resp.status_code}"}

        summary = await ctx.llm.quick_chat(
            internal_model(ctx.llm),
            "Summarize the following web page content in 3-5 concise paragraphs. Highlight the key points.",
            html_to_text(resp.text, 6000),
            temperature=0.5,
            max_tokens=500,
        )
        return {"url": url, "summary": summary}
