"""Wires every tool into a registry."""

from __future__ import annotations

from nova.config import Settings
from nova.db import Database
from nova.rate_limit import RateLimiter
from nova.tools import (
    discord_tools,
    google_tools,
    hue_tools,
    notion_tools,
    phone_tools,
    slack_tools,
    sonos_tools,
    spotify_tools,
    whatsapp_tools,
)
from nova.tools.calculator_tool import CalculateTool
from nova.tools.image_tool import GenerateImageTool
from nova.tools.read_url_tool import SummarizeUrlTool, WebFetchTool
from nova.tools.registry import ToolRegistry
from nova.tools.routine_tool import CreateRoutineTool
from nova.tools.time_tool import GetCurrentDatetimeTool
from nova.tools.translate_tool import TranslateTextTool
from nova.tools.weather_tool import WeatherCurrentTool
from nova.tools.web_search_tool import WebSearchTool


def build_tool_registry(db: Database, settings: Settings, rate_limiter: RateLimiter | None = None) -> ToolRegistry:
    rate_limiter = rate_limiter or RateLimiter(db)
    registry = ToolRegistry(db)

    for tool in (
        GetCurrentDatetimeTool(),
        WebSearchTool(settings.brave_search_api_key),
        CalculateTool(),
        WebFetchTool(),
        WeatherCurrentTool(),
        GenerateImageTool(
            rate_limiter,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            daily_limit=settings.image_daily_limit,
        ),
        TranslateTextTool(),
        SummarizeUrlTool(),
        CreateRoutineTool(db, max_routines=settings.max_routines_per_user),
        google_tools.CalendarListEventsTool(),
        google_tools.CalendarCreateEventTool(),
        google_tools.CalendarUpdateEventTool(),
        google_tools.CalendarDeleteEventTool(),
        google_tools.GmailSearchTool(),
        google_tools.GmailSendTool(),
        google_tools.DriveSearchTool(),
        spotify_tools.GetCurrentlyPlayingTool(),
        spotify_tools.SpotifySearchTool(),
        spotify_tools.PlayPauseTool(),
        spotify_tools.SkipTrackTool(),
        spotify_tools.ListPlaylistsTool(),
        notion_tools.NotionSearchTool(),
        notion_tools.NotionCreatePageTool(),
        notion_tools.NotionUpdatePageTool(),
        slack_tools.SlackSearchMessagesTool(),
        slack_tools.SlackListChannelsTool(),
        slack_tools.SlackSendMessageTool(),
        slack_tools.SlackSendDmTool(),
        hue_tools.HueListLightsTool(),
        hue_tools.HueControlLightTool(),
        hue_tools.HueListScenesTool(),
        hue_tools.HueActivateSceneTool(),
        sonos_tools.SonosGetGroupsTool(),
        sonos_tools.SonosPlaybackControlTool(),
        sonos_tools.SonosSetVolumeTool(),
        whatsapp_tools.WhatsAppSendMessageTool(),
        whatsapp_tools.WhatsAppReadMessagesTool(),
        discord_tools.DiscordSendMessageTool(settings.discord_bot_token),
        discord_tools.DiscordReadMessagesTool(settings.discord_bot_token),
        discord_tools.DiscordListServersTool(settings.discord_bot_token),
        phone_tools.CallContactTool(db, rate_limiter, daily_limit=settings.call_daily_limit),
        phone_tools.CallListRecentTool(db),
    ):
        registry.register(tool)
    return registry
