"""Notion workspace tools."""

from __future__ import annotations

from typing import Any

import httpx

from nova.tools.base import Tool, ToolContext

NOTION_API = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
TIMEOUT = 15.0


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Notion-Version": NOTION_VERSION,
        "Content-Type": "application/json",
    }


def _paragraph(content: str) -> dict[str, Any]:
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": [{"type": "text", "text": {"content": content}}]},
    }


def _title_property(title: str) -> dict[str, Any]:
    return {"title": {"title": [{"text": {"content": title}}]}}


def _page_title(result: dict[str, Any]) -> str:
    props = result.get("properties") or {}
    for candidate in (
        (props.get("title") or {}).get("title"),
        (props.get("Name") or {}).get("title"),
        result.get("title"),
    ):
        if candidate and candidate[0].get("plain_text"):
            return candidate[0]["plain_text"]
    return "Untitled"


class NotionTool(Tool):
    provider = "notion"


class NotionSearchTool(NotionTool):
    name = "notion_search"
    description = (
        "Search the user's Notion workspace for pages and databases. Call this when the user asks about their "
        "notes, docs, or Notion content."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {"query": {"type": "string", "description": "Search query"}},
        "required": ["query"],
    }
    status_label = "Searching Notion…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{NOTION_API}/search",
                json={"query": kwargs["query"], "page_size": 10},
                headers=_headers(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Notion API error: {resp.status_code}"}
        return {
            "results": [
                {
                    "id": r.get("id"),
                    "title": _page_title(r),
                    "type": r.get("object"),
                    "url": r.get("url"),
                    "lastEdited": r.get("last_edited_time"),
                }
                for r in resp.json().get("results", [])
            ]
        }


class NotionCreatePageTool(NotionTool):
    name = "notion_create_page"
    description = (
        "Create a new page in the user's Notion workspace. Call this when the user wants to save a note or "
        "create a document."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Page title"},
            "content": {"type": "string", "description": "Page content in plain text"},
        },
        "required": ["title", "content"],
    }
    status_label = "Creating Notion page…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        title = str(kwargs["title"])
        async with httpx.AsyncClient() as client:
            # New pages go under the first page the integration can see.
            search = await client.post(
                f"{NOTION_API}/search",
                json={"filter": {"property": "object", "value": "page"}, "page_size": 1},
                headers=_headers(token),
                timeout=TIMEOUT,
            )
            parents = search.json().get("results") if search.status_code == 200 else None
            if not parents:
                return {"error": "No parent page found in Notion"}

            resp = await client.post(
                f"{NOTION_API}/pages",
                json={
                    "parent": {"page_id": parents[0]["id"]},
                    "properties": _title_property(title),
                    "children": [_paragraph(str(kwargs["content"]))],
                },
                headers=_headers(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Notion API error: {resp.status_code}"}
        return {"created": True, "title": title, "url": resp.json().get("url")}


class NotionUpdatePageTool(NotionTool):
    name = "notion_update_page"
    description = (
        "Update an existing Notion page. Use the page ID from notion_search. You can update the title "
        "and/or append new content."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "pageId": {"type": "string", "description": "The page ID to update (from notion_search)"},
            "title": {"type": "string", "description": "New page title (optional)"},
            "content": {"type": "string", "description": "Content to append to the page (optional)"},
        },
        "required": ["pageId"],
    }
    status_label = "Updating Notion page…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        page_id = str(kwargs["pageId"])
        title = kwargs.get("title")
        content = kwargs.get("content")

        async with httpx.AsyncClient() as client:
            if title:
                resp = await client.patch(
                    f"{NOTION_API}/pages/{page_id}",
                    json={"properties": _title_property(title)},
                    headers=_headers(token),
                    timeout=TIMEOUT,
                )
                if resp.status_code != 200:
                    return {"error": f"Notion API error: {resp.status_code}"}
            if content:
                resp = await client.patch(
                    f"{NOTION_API}/blocks/{page_id}/children",
                    json={"children": [_paragraph(content)]},
                    headers=_headers(token),
                    timeout=TIMEOUT,
                )
                if resp.status_code != 200:
                    return {"error": f"Notion API error: {resp.status_code}"}

        result: dict[str, Any] = {"updated": True, "pageId": page_id}
        if title:
            result["title"] = title
        if content:
            result["contentAppended"] = True
        return result
