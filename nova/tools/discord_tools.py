"""Discord tools.

The user's OAuth token lists their guilds; channel listing and posting use
the bot token, since user tokens lack the channel scopes.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from nova.tools.base import Tool, ToolContext

DISCORD_API = "https://discord.com/api/v10"
TEXT_CHANNEL = 0
TIMEOUT = 15.0


class DiscordTool(Tool):
    provider = "discord"

    def __init__(self, bot_token: str) -> None:
        self._bot_token = bot_token

    def _bot_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bot {self._bot_token}"}

    async def _text_channels(self, client: httpx.AsyncClient, guild_id: str) -> list[dict[str, Any]]:
        resp = await client.get(f"{DISCORD_API}/guilds/{guild_id}/channels", headers=self._bot_headers())
        channels = resp.json() if resp.status_code == 200 else []
        return [c for c in channels if isinstance(c, dict) and c.get("type") == TEXT_CHANNEL]


async def _user_guilds(client: httpx.AsyncClient, token: str) -> list[dict[str, Any]]:
    resp = await client.get(f"{DISCORD_API}/users/@me/guilds", headers={"Authorization": f"Bearer {token}"})
    guilds = resp.json() if resp.status_code == 200 else []
    return guilds if isinstance(guilds, list) else []


class DiscordSendMessageTool(DiscordTool):
    name = "discord_send_message"
    description = "Send a message to a Discord channel. Call this when the user wants to post in a Discord channel."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "channelId": {"type": "string", "description": "The Discord channel ID to send to"},
            "serverName": {
                "type": "string",
                "description": "Server name (for finding the channel if channelId is unknown)",
            },
            "channelName": {
                "type": "string",
                "description": "Channel name (for finding the channel if channelId is unknown)",
            },
            "message": {"type": "string", "description": "The message text to send"},
        },
        "required": ["message"],
    }
    status_label = "Sending Discord message…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        channel_id = kwargs.get("channelId")
        server_name = (kwargs.get("serverName") or "").lower()
        channel_name = (kwargs.get("channelName") or "").lower()

        async with httpx.AsyncClient(timeout=TIMEOUT) as client:
            if not channel_id and (server_name or channel_name):
                guilds = await _user_guilds(client, token)
                guild = next((g for g in guilds if server_name in g.get("name", "").lower()), None)
                if guild is not None:
                    channels = await self._text_channels(client, guild["id"])
                    channel = next((c for c in channels if channel_name in c.get("name", "").lower()), None)
                    channel_id = channel["id"] if channel else None

            if not channel_id:
                return {
                    "error": (
                        "Could not find the Discord channel. Please provide a channelId or valid "
                        "server/channel name."
                    )
                }

            resp = await client.post(
                f"{DISCORD_API}/channels/{channel_id}/messages",
                json={"content": kwargs["message"]},
                headers=self._bot_headers(),
            )
        if resp.status_code not in (200, 201):
            return {"error": f"Failed to send Discord message: {resp.reason_phrase}"}
        suffix = f" #{kwargs['channelName']}" if kwargs.get("channelName") else ""
        return {"success": True, "message": f"Message sent to Discord{suffix}."}


class DiscordReadMessagesTool(DiscordTool):
    name = "discord_read_messages"
    description = "Read recent messages from a Discord channel."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "channelId": {"type": "string", "description": "The Discord channel ID"},
            "serverName": {"type": "string", "description": "Server name (for finding the channel)"},
            "channelName": {"type": "string", "description": "Channel name (for finding the channel)"},
            "limit": {"type": "number", "description": "Number of messages to retrieve (default 10, max 50)"},
        },
    }
    status_label = "Reading Discord messages…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        ctx.token(self.provider)
        channel_id = kwargs.get("channelId")
        if not channel_id:
            return {"error": "Please provide a channelId. Use discord_list_servers to find channel IDs."}
        limit = min(int(kwargs.get("limit") or 10), 50)

        async with httpx.AsyncClient(timeout=TIMEOUT) as client:
            resp = await client.get(
                f"{DISCORD_API}/channels/{channel_id}/messages",
                params={"limit": limit},
                headers=self._bot_headers(),
            )
        if resp.status_code != 200:
            return {"error": f"Failed to read Discord messages: {resp.reason_phrase}"}
        return {
            "messages": [
                {
                    "author": (m.get("author") or {}).get("username"),
                    "content": m.get("content"),
                    "timestamp": m.get("timestamp"),
                }
                for m in resp.json()
            ]
        }


class DiscordListServersTool(DiscordTool):
    name = "discord_list_servers"
    description = "List the Discord servers (guilds) the bot is a member of, along with their channels."
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}
    status_label = "Loading Discord servers…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient(timeout=TIMEOUT) as client:
            guilds = (await _user_guilds(client, token))[:10]
            channel_lists = await asyncio.gather(
                *(self._text_channels(client, g["id"]) for g in guilds), return_exceptions=True
            )

        servers = []
        for guild, channels in zip(guilds, channel_lists):
            if isinstance(channels, BaseException):
                channels = []
            servers.append(
                {
                    "name": guild.get("name"),
                    "id": guild.get("id"),
                    "channels": [{"id": c.get("id"), "name": c.get("name")} for c in channels[:20]],
                }
            )
        return {"servers": servers}
