"""Date/time utility tool."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from nova.tools.base import Tool, ToolContext


class GetCurrentDatetimeTool(Tool):
    """Returns the current date and time in a requested timezone."""

    name = "get_current_datetime"
    description = (
        "Get the current date, time, and day of the week. Call this when the user asks about the "
        "current time, date, or day. Also useful for calculating relative dates."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": 'IANA timezone (e.g., "Europe/Stockholm", "America/New_York"). Defaults to UTC.',
            },
        },
    }
    status_label = "Checking date & time…"

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        tz_name = str(kwargs.get("timezone") or "UTC")
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            return {"error": f"Invalid timezone: {tz_name}"}

        now = self._clock()
        local = now.astimezone(tz)
        return {
            "datetime": local.strftime("%A, %B %d, %Y at %I:%M:%S %p"),
            "iso": local.date().isoformat(),
            "timezone": tz_name,
            "unix": int(now.timestamp()),
        }
