"""WhatsApp Business tools."""

from __future__ import annotations

import re
from typing import Any

import httpx

from nova.tools.base import Tool, ToolContext

WHATSAPP_MESSAGES_URL = "https://graph.facebook.com/v18.0/me/messages"
TIMEOUT = 15.0


class WhatsAppTool(Tool):
    provider = "whatsapp"


class WhatsAppSendMessageTool(WhatsAppTool):
    name = "whatsapp_send_message"
    description = (
        "Send a WhatsApp message to a contact or group. Call this when the user wants to text someone on WhatsApp."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "to": {
                "type": "string",
                "description": 'Phone number (with country code, e.g., "+46701234567") or contact name',
            },
            "message": {"type": "string", "description": "The message text to send"},
        },
        "required": ["to", "message"],
    }
    status_label = "Sending WhatsApp message…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        to = str(kwargs["to"])
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                WHATSAPP_MESSAGES_URL,
                json={
                    "messaging_product": "whatsapp",
                    "to": re.sub(r"[^+\d]", "", to),
                    "type": "text",
                    "text": {"body": kwargs["message"]},
                },
                headers={"Authorization": f"Bearer {token}"},
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            try:
                detail = (resp.json().get("error") or {}).get("message")
            except ValueError:
                detail = None
            return {"error": f"Failed to send WhatsApp message: {detail or resp.reason_phrase}"}
        return {"success": True, "message": f"Message sent to {to} via WhatsApp."}


class WhatsAppReadMessagesTool(WhatsAppTool):
    name = "whatsapp_read_messages"
    description = (
        "Read recent WhatsApp messages from a conversation. Call this when the user wants to check their "
        "WhatsApp messages."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "from": {
                "type": "string",
                "description": "Contact name or phone number to read messages from. Leave empty for all recent messages.",
            },
            "limit": {"type": "number", "description": "Number of messages to retrieve (default 10, max 50)"},
        },
    }
    status_label = "WhatsApp beta preview (simulated)…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        ctx.token(self.provider)
        # The Business API only delivers inbound messages through webhooks; there is no read endpoint.
        return {
            "info": (
                "WhatsApp messages are received in real-time via webhooks. Recent messages from your "
                "conversations are shown in the WhatsApp integration panel."
            ),
            "tip": "Ask me to send a message instead, or check the WhatsApp integration page for received messages.",
        }
