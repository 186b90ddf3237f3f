"""Tests for tools that need no connected integration."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from nova.db import Database
from nova.rate_limit import RateLimiter
from nova.tools.base import ToolContext
from nova.tools.calculator_tool import CalculateTool
from nova.tools.image_tool import GenerateImageTool
from nova.tools.read_url_tool import SummarizeUrlTool, WebFetchTool, html_to_text
from nova.tools.routine_tool import CreateRoutineTool
from nova.tools.time_tool import GetCurrentDatetimeTool
from nova.tools.translate_tool import TranslateTextTool
from nova.tools.weather_tool import WeatherCurrentTool
from nova.tools.web_search_tool import WebSearchTool

NOW = datetime(2025, 3, 10, 14, 30, tzinfo=timezone.utc)


def _mock_response(data: dict | None = None, status_code: int = 200, text: str = "", headers=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data or {}
    resp.text = text
    resp.headers = headers or {}
    return resp


def _mock_client(**methods) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    for name, value in methods.items():
        setattr(mock_client, name, value)
    return mock_client


def _db(tmp_path) -> Database:
    db = Database(tmp_path / "nova.db")
    db.initialize()
    return db


class FakeLLM:
    name = "anthropic"

    def __init__(self, reply: str = "ok") -> None:
        self.reply = reply
        self.calls: list[tuple] = []

    async def quick_chat(self, model, system_prompt, user_message, temperature=0.7, max_tokens=1024):  # noqa: ANN001, ANN201
        self.calls.append((model, system_prompt, user_message, temperature, max_tokens))
        return self.reply


# Date/time


@pytest.mark.asyncio
async def test_datetime_in_timezone():
    tool = GetCurrentDatetimeTool(clock=lambda: NOW)

    result = await tool.run(ToolContext(), timezone="Europe/Stockholm")

    assert result["datetime"] == "Monday, March 10, 2025 at 03:30:00 PM"
    assert result["iso"] == "2025-03-10"
    assert result["timezone"] == "Europe/Stockholm"
    assert result["unix"] == int(NOW.timestamp())


@pytest.mark.asyncio
async def test_datetime_defaults_to_utc_and_rejects_bad_zone():
    tool = GetCurrentDatetimeTool(clock=lambda: NOW)

    assert (await tool.run(ToolContext()))["timezone"] == "UTC"
    assert await tool.run(ToolContext(), timezone="Mars/Olympus") == {"error": "Invalid timezone: Mars/Olympus"}


# Calculator


@pytest.mark.asyncio
async def test_calculate_returns_integers_when_whole():
    tool = CalculateTool()

    assert await tool.run(ToolContext(), expression="sqrt(144) + 5 * 3") == {
        "expression": "sqrt(144) + 5 * 3",
        "result": 27,
    }
    assert (await tool.run(ToolContext(), expression="1 / 4"))["result"] == 0.25


@pytest.mark.asyncio
async def test_calculate_reports_errors():
    result = await CalculateTool().run(ToolContext(), expression="import os")

    assert result["error"].startswith("Failed to evaluate 'import os'")


# Web search


@pytest.mark.asyncio
async def test_web_search_uses_brave_when_keyed():
    payload = {"web": {"results": [{"title": "Nova", "url": "https://nova.ai", "description": "An assistant"}]}}
    mock_client = _mock_client(get=AsyncMock(return_value=_mock_response(payload)))

    with patch("nova.tools.web_search_tool.httpx.AsyncClient", return_value=mock_client):
        result = await WebSearchTool(brave_api_key="brave-key").run(ToolContext(), query="nova")

    assert result == {
        "results": [{"title": "Nova", "url": "https://nova.ai", "snippet": "An assistant"}],
        "source": "brave",
    }
    assert mock_client.get.call_args.kwargs["headers"]["X-Subscription-Token"] == "brave-key"


@pytest.mark.asyncio
async def test_web_search_falls_back_to_duckduckgo():
    mock_client = _mock_client(get=AsyncMock(return_value=_mock_response(status_code=429)))
    ddgs = MagicMock()
    ddgs.text.return_value = [{"title": "Duck", "href": "https://duck.com", "body": "Quack"}]

    with (
        patch("nova.tools.web_search_tool.httpx.AsyncClient", return_value=mock_client),
        patch("nova.tools.web_search_tool.DDGS", return_value=ddgs),
    ):
        result = await WebSearchTool(brave_api_key="brave-key").run(ToolContext(), query="duck")

    assert result["source"] == "duckduckgo"
    assert result["results"] == [{"title": "Duck", "url": "https://duck.com", "snippet": "Quack"}]
    ddgs.text.assert_called_once_with("duck", max_results=5, backend="duckduckgo")


@pytest.mark.asyncio
async def test_web_search_without_key_skips_brave_and_handles_empty_results():
    ddgs = MagicMock()
    ddgs.text.return_value = []

    with (
        patch("nova.tools.web_search_tool.httpx.AsyncClient") as client_cls,
        patch("nova.tools.web_search_tool.DDGS", return_value=ddgs),
    ):
        result = await WebSearchTool().run(ToolContext(), query="obscure")

    client_cls.assert_not_called()
    assert result["results"] == []
    assert "No results" in result["message"]


@pytest.mark.asyncio
async def test_web_search_reports_unavailable_when_duckduckgo_fails():
    ddgs = MagicMock()
    ddgs.text.side_effect = RuntimeError("ratelimited")

    with patch("nova.tools.web_search_tool.DDGS", return_value=ddgs):
        result = await WebSearchTool().run(ToolContext(), query="anything")

    assert result == {"error": "Web search temporarily unavailable"}


# URL fetching


def test_html_to_text_strips_markup():
    html = "<html><style>p{}</style><script>alert(1)</script><p>Hello</p>\n\n<b>world</b></html>"

    assert html_to_text(html, 100) == "Hello world"
    assert html_to_text(html, 5) == "Hello"


@pytest.mark.asyncio
async def test_web_fetch_returns_text():
    resp = _mock_response(text="<h1>Title</h1><p>Body</p>", headers={"content-type": "text/html; charset=utf-8"})
    mock_client = _mock_client(get=AsyncMock(return_value=resp))

    with patch("nova.tools.read_url_tool.httpx.AsyncClient", return_value=mock_client):
        result = await WebFetchTool().run(ToolContext(), url="https://example.com")

    assert result == {"url": "https://example.com", "content": "Title Body", "length": 10}


@pytest.mark.asyncio
async def test_web_fetch_rejects_binary_and_http_errors():
    pdf = _mock_response(headers={"content-type": "application/pdf"})
    missing = _mock_response(status_code=404)

    with patch("nova.tools.read_url_tool.httpx.AsyncClient", return_value=_mock_client(get=AsyncMock(return_value=pdf))):
        assert (await WebFetchTool().run(ToolContext(), url="https://x.com/a.pdf"))["error"].startswith(
            "Unsupported content type"
        )
    with patch(
        "nova.tools.read_url_tool.httpx.AsyncClient", return_value=_mock_client(get=AsyncMock(return_value=missing))
    ):
        assert await WebFetchTool().run(ToolContext(), url="https://x.com") == {"error": "Failed to fetch URL: 404"}


@pytest.mark.asyncio
async def test_web_fetch_transport_error():
    failing = _mock_client(get=AsyncMock(side_effect=httpx.ConnectError("refused")))

    with patch("nova.tools.read_url_tool.httpx.AsyncClient", return_value=failing):
        result = await WebFetchTool().run(ToolContext(), url="https://down.example")

    assert result == {"error": "Failed to fetch: https://down.example"}


@pytest.mark.asyncio
async def test_summarize_url_uses_internal_model():
    llm = FakeLLM("A short summary.")
    resp = _mock_response(text="<p>Long article</p>")

    with patch("nova.tools.read_url_tool.httpx.AsyncClient", return_value=_mock_client(get=AsyncMock(return_value=resp))):
        result = await SummarizeUrlTool().run(ToolContext(llm=llm), url="https://news.example")

    assert result == {"url": "https://news.example", "summary": "A short summary."}
    model, _, user_message, temperature, max_tokens = llm.calls[0]
    assert model == "claude-haiku-4-5-20251001"
    assert user_message == "Long article"
    assert (temperature, max_tokens) == (0.5, 500)


# Weather


@pytest.mark.asyncio
async def test_weather_current():
    geo = _mock_response({"results": [{"name": "Stockholm", "country": "Sweden", "latitude": 59.3, "longitude": 18.1}]})
    forecast = _mock_response(
        {
            "current": {
                "temperature_2m": 4.2,
                "relative_humidity_2m": 81,
                "wind_speed_10m": 12.5,
                "weather_code": 61,
            }
        }
    )
    mock_client = _mock_client(get=AsyncMock(side_effect=[geo, forecast]))

    with patch("nova.tools.weather_tool.httpx.AsyncClient", return_value=mock_client):
        result = await WeatherCurrentTool().run(ToolContext(), location="Stockholm")

    assert result == {
        "location": "Stockholm, Sweden",
        "temperature": "4.2°C",
        "humidity": "81%",
        "wind": "12.5 km/h",
        "condition": "Slight rain",
    }
    assert mock_client.get.call_args_list[1].kwargs["params"]["latitude"] == 59.3


@pytest.mark.asyncio
async def test_weather_unknown_location():
    mock_client = _mock_client(get=AsyncMock(return_value=_mock_response({"results": []})))

    with patch("nova.tools.weather_tool.httpx.AsyncClient", return_value=mock_client):
        result = await WeatherCurrentTool().run(ToolContext(), location="Atlantis")

    assert result == {"error": "Location not found: Atlantis"}


# Image generation


@pytest.mark.asyncio
async def test_generate_image_meters_per_caller(tmp_path):
    limiter = RateLimiter(_db(tmp_path), clock=lambda: NOW)
    resp = _mock_response({"data": [{"url": "https://img/1.png", "revised_prompt": "a cat, detailed"}]})
    mock_client = _mock_client(post=AsyncMock(return_value=resp))
    tool = GenerateImageTool(limiter, api_key="sk", base_url="https://api.openai.com/v1", daily_limit=1)

    with patch("nova.tools.image_tool.httpx.AsyncClient", return_value=mock_client):
        first = await tool.run(ToolContext(caller_id="u1"), prompt="a cat")
        second = await tool.run(ToolContext(caller_id="u1"), prompt="a dog")
        other = await tool.run(ToolContext(caller_id="u2"), prompt="a bird", size="1792x1024")

    assert first == {
        "imageUrl": "https://img/1.png",
        "revisedPrompt": "a cat, detailed",
        "size": "1024x1024",
        "imagesRemaining": 0,
    }
    assert second["remaining"] == 0
    assert second["limit"] == 1
    assert "limit reached" in second["error"]
    assert other["size"] == "1792x1024"
    assert mock_client.post.call_count == 2
    assert mock_client.post.call_args.kwargs["json"]["model"] == "dall-e-3"


# Translation


@pytest.mark.asyncio
async def test_translate_text():
    llm = FakeLLM("Hej världen")

    result = await TranslateTextTool().run(
        ToolContext(llm=llm), text="Hello world", targetLanguage="Swedish", sourceLanguage="English"
    )

    assert result == {
        "original": "Hello world",
        "translated": "Hej världen",
        "targetLanguage": "Swedish",
        "sourceLanguage": "English",
    }
    assert "from English to Swedish" in llm.calls[0][1]
    assert llm.calls[0][3:] == (0.3, 1000)


# Routine creation


@pytest.mark.asyncio
async def test_create_routine(tmp_path):
    db = _db(tmp_path)
    tool = CreateRoutineTool(db, clock=lambda: NOW)

    result = await tool.run(
        ToolContext(caller_id="u1"),
        name="Morning briefing",
        schedule="0 8 * * *",
        toolChain=[
            {"toolName": "google_calendar_list_events", "args": {}},
            {"toolName": "slack_send_dm", "args": {"user": "me", "message": "{{PREVIOUS_RESULT}}"}},
        ],
    )

    assert result["success"] is True
    assert result["routine"]["schedule"] == "Daily at 08:00 UTC"
    assert result["routine"]["steps"] == 2
    assert result["routine"]["nextRun"] == "2025-03-11T08:00:00+00:00"
    assert "daily at 08:00 UTC" in result["message"]
    stored = db.list_routines("u1")[0]
    assert stored.steps[1].args["message"] == "{{PREVIOUS_RESULT}}"


@pytest.mark.asyncio
async def test_create_routine_validation(tmp_path):
    db = _db(tmp_path)
    tool = CreateRoutineTool(db, max_routines=1, clock=lambda: NOW)
    ctx = ToolContext(caller_id="u1")
    chain = [{"toolName": "calculate", "args": {"expression": "1+1"}}]

    assert "Invalid cron" in (await tool.run(ctx, name="x", schedule="every day", toolChain=chain))["error"]
    assert "at least one step" in (await tool.run(ctx, name="x", schedule="0 8 * * *", toolChain=[]))["error"]
    assert "toolName" in (await tool.run(ctx, name="x", schedule="0 8 * * *", toolChain=[{"args": {}}]))["error"]
    assert (await tool.run(ctx, name="first", schedule="0 8 * * *", toolChain=chain))["success"]
    assert "Maximum 1 routines" in (await tool.run(ctx, name="second", schedule="0 8 * * *", toolChain=chain))["error"]
