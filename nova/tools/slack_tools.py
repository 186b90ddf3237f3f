"""Slack workspace tools."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from nova.tools.base import Tool, ToolContext

SLACK_API = "https://slack.com/api"
TIMEOUT = 15.0


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _ts_to_iso(ts: str | None) -> str | None:
    return datetime.fromtimestamp(float(ts), tz=timezone.utc).isoformat() if ts else None


def _is_channel_id(channel: str) -> bool:
    return channel[:1] in ("C", "D", "G") and channel.isupper()


class SlackTool(Tool):
    provider = "slack"


class SlackSearchMessagesTool(SlackTool):
    name = "slack_search_messages"
    description = (
        "Search messages in the user's Slack workspace. Call this when the user asks about Slack "
        "conversations or messages."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {"query": {"type": "string", "description": "Search query for messages"}},
        "required": ["query"],
    }
    status_label = "Searching Slack…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{SLACK_API}/search.messages",
                params={"query": kwargs["query"], "count": 10},
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Slack API error: {resp.status_code}"}
        data = resp.json()
        if not data.get("ok"):
            return {"error": data.get("error") or "Slack search failed"}
        matches = (data.get("messages") or {}).get("matches", [])[:10]
        return {
            "messages": [
                {
                    "text": (m.get("text") or "")[:200],
                    "from": m.get("username"),
                    "channel": (m.get("channel") or {}).get("name"),
                    "timestamp": _ts_to_iso(m.get("ts")),
                }
                for m in matches
            ]
        }


class SlackListChannelsTool(SlackTool):
    name = "slack_list_channels"
    description = "List the user's Slack channels. Call this when the user asks about their Slack channels."
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}
    status_label = "Loading Slack channels…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{SLACK_API}/conversations.list",
                params={"types": "public_channel,private_channel", "limit": 50},
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Slack API error: {resp.status_code}"}
        data = resp.json()
        if not data.get("ok"):
            return {"error": data.get("error") or "Slack channels failed"}
        return {
            "channels": [
                {
                    "id": c.get("id"),
                    "name": c.get("name"),
                    "private": c.get("is_private"),
                    "members": c.get("num_members"),
                    "purpose": ((c.get("purpose") or {}).get("value") or "")[:100],
                }
                for c in data.get("channels", [])
            ]
        }


class SlackSendMessageTool(SlackTool):
    name = "slack_send_message"
    description = (
        "Send a message to a Slack channel, optionally as a thread reply. Call this when the user wants to "
        "post a message to a Slack channel."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "channel": {"type": "string", "description": "Channel name (without #) or channel ID"},
            "text": {"type": "string", "description": "Message text to send"},
            "thread_ts": {
                "type": "string",
                "description": "Thread timestamp to reply to (optional - makes this a thread reply)",
            },
        },
        "required": ["channel", "text"],
    }
    status_label = "Sending Slack message…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        channel = str(kwargs["channel"]).strip()

        async with httpx.AsyncClient() as client:
            if not _is_channel_id(channel):
                lookup = await client.get(
                    f"{SLACK_API}/conversations.list",
                    params={"types": "public_channel,private_channel", "limit": 200},
                    headers=_auth(token),
                    timeout=TIMEOUT,
                )
                wanted = channel.lstrip("#")
                found = next((c for c in lookup.json().get("channels", []) if c.get("name") == wanted), None)
                if found is None:
                    return {"error": f'Channel "{channel}" not found'}
                channel = found["id"]

            body = {"channel": channel, "text": kwargs["text"]}
            if kwargs.get("thread_ts"):
                body["thread_ts"] = kwargs["thread_ts"]
            resp = await client.post(f"{SLACK_API}/chat.postMessage", json=body, headers=_auth(token), timeout=TIMEOUT)

        data = resp.json()
        if not data.get("ok"):
            return {"error": data.get("error") or "Failed to send message"}
        return {
            "sent": True,
            "channel": data.get("channel"),
            "timestamp": data.get("ts"),
            "thread_ts": (data.get("message") or {}).get("thread_ts"),
        }


class SlackSendDmTool(SlackTool):
    name = "slack_send_dm"
    description = "Send a direct message to a Slack user. Call this when the user wants to DM someone on Slack."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "userId": {"type": "string", "description": "The Slack user ID to send a DM to"},
            "text": {"type": "string", "description": "Message text to send"},
        },
        "required": ["userId", "text"],
    }
    status_label = "Sending Slack DM…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        slack_user = str(kwargs["userId"])
        async with httpx.AsyncClient() as client:
            opened = await client.post(
                f"{SLACK_API}/conversations.open", json={"users": slack_user}, headers=_auth(token), timeout=TIMEOUT
            )
            open_data = opened.json()
            if not open_data.get("ok"):
                return {"error": open_data.get("error") or "Failed to open DM conversation"}
            dm_channel = (open_data.get("channel") or {}).get("id")
            if not dm_channel:
                return {"error": "Failed to get DM channel"}

            resp = await client.post(
                f"{SLACK_API}/chat.postMessage",
                json={"channel": dm_channel, "text": kwargs["text"]},
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        data = resp.json()
        if not data.get("ok"):
            return {"error": data.get("error") or "Failed to send DM"}
        return {"sent": True, "userId": slack_user, "timestamp": data.get("ts")}
