"""AI phone call tools (beta: calls are recorded, not yet dialled)."""

from __future__ import annotations

import math
import re
from typing import Any

from nova.db import Database
from nova.rate_limit import RateLimiter
from nova.tools.base import Tool, ToolContext


def mask_phone_number(number: str) -> str:
    """Replace every digit except the last four with ``*``."""

    return re.sub(r"\d(?=\d{4})", "*", number)


class CallContactTool(Tool):
    name = "call_contact"
    description = (
        "Initiate an AI-powered phone call to a contact. The AI will call the person, have a conversation on "
        "your behalf based on your instructions, and provide a transcript and summary afterward. "
        "Billed at $0.10/minute."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "contactName": {"type": "string", "description": "Name of the person to call"},
            "phoneNumber": {
                "type": "string",
                "description": 'Phone number with country code (e.g., "+46701234567")',
            },
            "objective": {
                "type": "string",
                "description": (
                    'What the AI should accomplish during the call (e.g., "Schedule a dinner reservation for '
                    'Friday at 7pm", "Ask about their business hours")'
                ),
            },
            "tone": {
                "type": "string",
                "description": 'Communication style: "professional", "casual", or "friendly". Default: "friendly"',
            },
        },
        "required": ["contactName", "phoneNumber", "objective"],
    }
    provider = "phone"
    status_label = "Phone call beta preview (simulated)…"

    def __init__(self, db: Database, rate_limiter: RateLimiter, daily_limit: int = 10) -> None:
        self._db = db
        self._rate_limiter = rate_limiter
        self._daily_limit = daily_limit

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        ctx.token(self.provider)
        quota = self._rate_limiter.check(f"calls:{ctx.caller_id}", self._daily_limit)
        if not quota.allowed:
            return {
                "error": f"Daily AI call limit reached ({self._daily_limit}/day). Try again tomorrow.",
                "remaining": 0,
                "limit": self._daily_limit,
            }

        contact = str(kwargs["contactName"])
        number = str(kwargs["phoneNumber"])
        tone = kwargs.get("tone") or "friendly"
        call_id = self._db.create_call_record(ctx.caller_id, contact, mask_phone_number(number))
        return {
            "success": True,
            "callId": call_id,
            "message": (
                f"AI call initiated to {contact} ({number}). The AI will {kwargs['objective']}. Tone: {tone}. "
                "You'll receive a transcript and summary when the call ends."
            ),
            "estimatedCost": "$0.10/minute",
            "note": "AI Phone Calls are in beta. The call will appear in your call history once completed.",
        }


class CallListRecentTool(Tool):
    name = "call_list_recent"
    description = "List recent AI phone calls with their status, duration, cost, and summaries."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "limit": {"type": "number", "description": "Number of recent calls to retrieve (default 10)"},
        },
    }
    provider = "phone"
    status_label = "Loading recent calls…"

    def __init__(self, db: Database) -> None:
        self._db = db

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        ctx.token(self.provider)
        limit = min(int(kwargs.get("limit") or 10), 50)
        calls = self._db.list_call_records(ctx.caller_id, limit)
        if not calls:
            return {"message": "No recent calls found.", "calls": []}
        return {
            "calls": [
                {
                    "id": c["id"],
                    "contact": c["contact_name"],
                    "phone": c["phone_number"],
                    "status": c["status"],
                    "duration": f"{math.ceil(c['duration_seconds'] / 60)} min" if c["duration_seconds"] > 0 else "N/A",
                    "cost": f"${c['cost_cents'] / 100:.2f}" if c["cost_cents"] > 0 else "N/A",
                    "summary": c["summary"] or "No summary available",
                    "date": c["created_at"],
                }
                for c in calls
            ]
        }
