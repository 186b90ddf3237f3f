"""Current weather via Open-Meteo geocoding and forecast APIs (no key required)."""

from __future__ import annotations

from typing import Any

import httpx

from nova.tools.base import Tool, ToolContext

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

WEATHER_CODES: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


class WeatherCurrentTool(Tool):
    name = "weather_current"
    description = "Get current weather for a location. Call this when the user asks about the weather."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "location": {"type": "string", "description": 'City name (e.g., "Stockholm", "New York", "Tokyo")'},
        },
        "required": ["location"],
    }
    status_label = "Checking the weather…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        location = str(kwargs["location"]).strip()
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                geo = await client.get(GEOCODING_URL, params={"name": location, "count": 1, "language": "en"})
                places = geo.json().get("results") or []
                if not places:
                    return {"error": f"Location not found: {location}"}
                place = places[0]

                forecast = await client.get(
                    FORECAST_URL,
                    params={
                        "latitude": place["latitude"],
                        "longitude": place["longitude"],
                        "current": "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code",
                        "timezone": "auto",
                    },
                )
                current = forecast.json()["current"]
        except (httpx.HTTPError, KeyError, ValueError):
            return {"error": "Weather service temporarily unavailable"}

        return {
            "location": f"{place.get('name')}, {place.get('country')}",
            "temperature": f"{current['temperature_2m']}°C",
            "humidity": f"{current['relative_humidity_2m']}%",
            "wind": f"{current['wind_speed_10m']} km/h",
            "condition": WEATHER_CODES.get(current.get("weather_code"), "Unknown"),
        }
