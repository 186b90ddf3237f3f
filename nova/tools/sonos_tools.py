"""Sonos speaker tools (Sonos Control API)."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from nova.tools.base import Tool, ToolContext

SONOS_API = "https://api.ws.sonos.com/control/api/v1"
TIMEOUT = 15.0


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class SonosTool(Tool):
    provider = "sonos"


class SonosGetGroupsTool(SonosTool):
    name = "sonos_get_groups"
    description = (
        "List Sonos speaker groups in the user's household. Returns group names, player names, and playback state."
    )
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}
    status_label = "Checking your speakers…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient() as client:
            households = await client.get(f"{SONOS_API}/households", headers=_auth(token), timeout=TIMEOUT)
            if households.status_code != 200:
                return {"error": f"Sonos API error: {households.status_code}"}
            found = households.json().get("households") or []
            if not found:
                return {"error": "No Sonos household found"}

            resp = await client.get(
                f"{SONOS_API}/households/{found[0]['id']}/groups", headers=_auth(token), timeout=TIMEOUT
            )
        if resp.status_code != 200:
            return {"error": f"Sonos API error: {resp.status_code}"}

        data = resp.json()
        return {
            "groups": [
                {
                    "id": g.get("id"),
                    "name": g.get("name"),
                    "playbackState": g.get("playbackState"),
                    "playerCount": len(g.get("playerIds") or []),
                }
                for g in data.get("groups", [])
            ],
            "players": [{"id": p.get("id"), "name": p.get("name")} for p in data.get("players", [])],
        }


class SonosPlaybackControlTool(SonosTool):
    name = "sonos_playback_control"
    description = "Control Sonos playback - play, pause, skip forward, or skip backward."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "groupId": {"type": "string", "description": "The speaker group ID (from sonos_get_groups)"},
            "action": {
                "type": "string",
                "enum": ["play", "pause", "skipToNextTrack", "skipToPreviousTrack"],
                "description": "Playback action",
            },
        },
        "required": ["groupId", "action"],
    }
    status_label = "Controlling Sonos playback…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        group_id = str(kwargs["groupId"])
        action = kwargs["action"]
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{SONOS_API}/groups/{quote(group_id, safe='')}/playback/{action}",
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Sonos API error: {resp.status_code}"}
        return {"success": True, "groupId": group_id, "action": action}


class SonosSetVolumeTool(SonosTool):
    name = "sonos_set_volume"
    description = "Set volume for a Sonos speaker group (0-100)."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "groupId": {"type": "string", "description": "The speaker group ID (from sonos_get_groups)"},
            "volume": {"type": "number", "description": "Volume level 0-100"},
        },
        "required": ["groupId", "volume"],
    }
    status_label = "Adjusting volume…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        group_id = str(kwargs["groupId"])
        volume = int(min(100, max(0, kwargs["volume"])))
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{SONOS_API}/groups/{quote(group_id, safe='')}/groupVolume",
                json={"volume": volume},
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Sonos API error: {resp.status_code}"}
        return {"success": True, "groupId": group_id, "volume": volume}
