"""Spotify playback and library tools."""

from __future__ import annotations

from typing import Any

import httpx

from nova.tools.base import Tool, ToolContext

SPOTIFY_API = "https://api.spotify.com/v1"
TIMEOUT = 15.0

NO_ACTIVE_DEVICE = "No active Spotify device found. Please open Spotify on a device first."


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _artists(item: dict[str, Any]) -> str | None:
    artists = item.get("artists")
    return ", ".join(a.get("name", "") for a in artists) if artists else None


def _player_result(resp: httpx.Response, **result: Any) -> dict[str, Any]:
    if resp.status_code in (200, 202, 204):
        return {"success": True, **result}
    if resp.status_code == 404:
        return {"error": NO_ACTIVE_DEVICE}
    return {"error": f"Spotify API error: {resp.status_code}"}


class SpotifyTool(Tool):
    provider = "spotify"


class GetCurrentlyPlayingTool(SpotifyTool):
    name = "spotify_get_currently_playing"
    description = "Get the song currently playing on the user's Spotify. Call this when the user asks what's playing."
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}
    status_label = "Checking what's playing…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"{SPOTIFY_API}/me/player/currently-playing", headers=_auth(token), timeout=TIMEOUT)
        if resp.status_code == 204:
            return {"playing": False, "message": "Nothing is currently playing"}
        if resp.status_code != 200:
            return {"error": f"Spotify API error: {resp.status_code}"}

        data = resp.json()
        item = data.get("item") or {}
        return {
            "playing": data.get("is_playing"),
            "track": item.get("name"),
            "artist": _artists(item),
            "album": (item.get("album") or {}).get("name"),
        }


class SpotifySearchTool(SpotifyTool):
    name = "spotify_search"
    description = "Search for tracks, artists, or albums on Spotify."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "type": {
                "type": "string",
                "enum": ["track", "artist", "album"],
                "description": "What to search for",
                "default": "track",
            },
        },
        "required": ["query"],
    }
    status_label = "Searching Spotify…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        kind = kwargs.get("type") or "track"
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{SPOTIFY_API}/search",
                params={"q": kwargs["query"], "type": kind, "limit": 5},
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Spotify API error: {resp.status_code}"}

        items = (resp.json().get(f"{kind}s") or {}).get("items", [])
        return {
            "results": [
                {
                    "name": item.get("name"),
                    "artist": _artists(item),
                    "album": (item.get("album") or {}).get("name"),
                    "uri": item.get("uri"),
                }
                for item in items
            ]
        }


class PlayPauseTool(SpotifyTool):
    name = "spotify_play_pause"
    description = (
        "Play or pause the user's Spotify playback. Call this when the user wants to play, pause, or resume "
        "music. Pass a uri from spotify_search to start a specific track."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "action": {"type": "string", "enum": ["play", "pause"], "description": "Whether to play or pause"},
            "uri": {"type": "string", "description": "Spotify track URI to start playing (optional)"},
        },
        "required": ["action"],
    }
    status_label = "Controlling Spotify playback…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        action = kwargs["action"]
        uri = kwargs.get("uri")
        body = {"uris": [uri]} if action == "play" and uri else None
        async with httpx.AsyncClient() as client:
            resp = await client.put(
                f"{SPOTIFY_API}/me/player/{'pause' if action == 'pause' else 'play'}",
                json=body,
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        return _player_result(resp, action=action)


class SkipTrackTool(SpotifyTool):
    name = "spotify_skip_track"
    description = (
        "Skip to the next or previous track on Spotify. Call this when the user wants to skip or go back a song."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "direction": {
                "type": "string",
                "enum": ["next", "previous"],
                "description": "Skip forward or backward",
            },
        },
        "required": ["direction"],
    }
    status_label = "Skipping track…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        direction = kwargs["direction"]
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{SPOTIFY_API}/me/player/{'previous' if direction == 'previous' else 'next'}",
                headers=_auth(token),
                timeout=TIMEOUT,
            )
        return _player_result(resp, direction=direction)


class ListPlaylistsTool(SpotifyTool):
    name = "spotify_list_playlists"
    description = "List the user's Spotify playlists. Call this when the user asks about their playlists."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "limit": {"type": "number", "description": "Number of playlists to return (default 20, max 50)"},
        },
    }
    status_label = "Loading your playlists…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        limit = min(int(kwargs.get("limit") or 20), 50)
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{SPOTIFY_API}/me/playlists", params={"limit": limit}, headers=_auth(token), timeout=TIMEOUT
            )
        if resp.status_code != 200:
            return {"error": f"Spotify API error: {resp.status_code}"}
        return {
            "playlists": [
                {
                    "name": p.get("name"),
                    "id": p.get("id"),
                    "trackCount": (p.get("tracks") or {}).get("total"),
                    "owner": (p.get("owner") or {}).get("display_name"),
                    "public": p.get("public"),
                }
                for p in resp.json().get("items", [])
            ]
        }
