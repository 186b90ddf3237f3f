"""Google Calendar, Gmail and Drive tools."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from nova.tools.base import Tool, ToolContext

CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
GMAIL_MESSAGES_URL = "https://www.googleapis.com/gmail/v1/users/me/messages"
DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"

TIMEOUT = 15.0


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _event_time(value: dict[str, Any] | None) -> str | None:
    value = value or {}
    return value.get("dateTime") or value.get("date")


def _header(headers: list[dict[str, str]], name: str) -> str | None:
    return next((h.get("value") for h in headers if h.get("name") == name), None)


def _drive_file_type(mime_type: str | None) -> str | None:
    # "application/vnd.google-apps.spreadsheet" -> "Sheet"; other types pass through.
    if not mime_type:
        return mime_type
    kind = mime_type.rsplit(".", 1)[-1]
    return kind.replace("document", "Doc").replace("spreadsheet", "Sheet").replace("presentation", "Slides")


class GoogleTool(Tool):
    provider = "google"


class CalendarListEventsTool(GoogleTool):
    name = "google_calendar_list_events"
    description = (
        "List upcoming calendar events for the user. Call this when the user asks about their schedule, "
        "meetings, or calendar."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "maxResults": {"type": "number", "description": "Maximum events to return (default 10)", "default": 10},
        },
    }
    status_label = "Checking your calendar…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        params = {
            "maxResults": int(kwargs.get("maxResults") or 10),
            "timeMin": datetime.now(timezone.utc).isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        async with httpx.AsyncClient() as client:
            resp = await client.get(CALENDAR_EVENTS_URL, params=params, headers=_auth(token), timeout=TIMEOUT)
        if resp.status_code != 200:
            return {"error": f"Calendar API error: {resp.status_code}"}

        events = []
        for item in resp.json().get("items", []):
            event = {
                "id": item.get("id"),
                "title": item.get("summary"),
                "start": _event_time(item.get("start")),
                "end": _event_time(item.get("end")),
            }
            if item.get("location"):
                event["location"] = item["location"]
            if item.get("description"):
                event["description"] = item["description"]
            events.append(event)
        return {"events": events}


class CalendarCreateEventTool(GoogleTool):
    name = "google_calendar_create_event"
    description = (
        "Create a new event on the user's Google Calendar. Call this when the user wants to schedule something."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Event title"},
            "startTime": {
                "type": "string",
                "description": 'Start time in ISO 8601 format (e.g., "2026-02-08T14:00:00+01:00")',
            },
            "endTime": {
                "type": "string",
                "description": 'End time in ISO 8601 format (e.g., "2026-02-08T15:00:00+01:00")',
            },
            "description": {"type": "string", "description": "Event description (optional)"},
            "location": {"type": "string", "description": "Event location (optional)"},
        },
        "required": ["title", "startTime", "endTime"],
    }
    status_label = "Creating calendar event…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        body: dict[str, Any] = {
            "summary": kwargs["title"],
            "start": {"dateTime": kwargs["startTime"]},
            "end": {"dateTime": kwargs["endTime"]},
        }
        for key in ("description", "location"):
            if kwargs.get(key):
                body[key] = kwargs[key]

        async with httpx.AsyncClient() as client:
            resp = await client.post(CALENDAR_EVENTS_URL, json=body, headers=_auth(token), timeout=TIMEOUT)
        if resp.status_code != 200:
            return {"error": f"Calendar API error: {resp.status_code}"}
        return {
            "created": True,
            "title": kwargs["title"],
            "start": kwargs["startTime"],
            "end": kwargs["endTime"],
            "link": resp.json().get("htmlLink"),
        }


class CalendarUpdateEventTool(GoogleTool):
    name = "google_calendar_update_event"
    description = (
        "Update an existing event on the user's Google Calendar. Use the event ID from "
        "google_calendar_list_events. Only include fields that should be changed."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "eventId": {"type": "string", "description": "The event ID to update (from google_calendar_list_events)"},
            "title": {"type": "string", "description": "New event title (optional)"},
            "startTime": {"type": "string", "description": "New start time in ISO 8601 format (optional)"},
            "endTime": {"type": "string", "description": "New end time in ISO 8601 format (optional)"},
            "description": {"type": "string", "description": "New event description (optional)"},
            "location": {"type": "string", "description": "New event location (optional)"},
        },
        "required": ["eventId"],
    }
    status_label = "Updating calendar event…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        event_id = str(kwargs["eventId"])
        body: dict[str, Any] = {}
        if kwargs.get("title"):
            body["summary"] = kwargs["title"]
        for key in ("description", "location"):
            if kwargs.get(key):
                body[key] = kwargs[key]
        if kwargs.get("startTime"):
            body["start"] = {"dateTime": kwargs["startTime"]}
        if kwargs.get("endTime"):
            body["end"] = {"dateTime": kwargs["endTime"]}

        async with httpx.AsyncClient() as client:
            resp = await client.patch(
                f"{CALENDAR_EVENTS_URL}/{quote(event_id, safe='')}", json=body, headers=_auth(token), timeout=TIMEOUT
            )
        if resp.status_code != 200:
            return {"error": f"Calendar API error: {resp.status_code}"}
        event = resp.json()
        return {
            "updated": True,
            "id": event.get("id"),
            "title": event.get("summary"),
            "start": _event_time(event.get("start")),
            "end": _event_time(event.get("end")),
            "link": event.get("htmlLink"),
        }


class CalendarDeleteEventTool(GoogleTool):
    name = "google_calendar_delete_event"
    description = (
        "Delete an event from the user's Google Calendar. Use the event ID from google_calendar_list_events. "
        "Always confirm with the user before deleting."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "eventId": {"type": "string", "description": "The event ID to delete (from google_calendar_list_events)"},
        },
        "required": ["eventId"],
    }
    status_label = "Deleting calendar event…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        event_id = str(kwargs["eventId"])
        async with httpx.AsyncClient() as client:
            resp = await client.delete(
                f"{CALENDAR_EVENTS_URL}/{quote(event_id, safe='')}", headers=_auth(token), timeout=TIMEOUT
            )
        if resp.status_code not in (200, 204):
            return {"error": f"Calendar API error: {resp.status_code}"}
        return {"deleted": True, "eventId": event_id}


class GmailSearchTool(GoogleTool):
    name = "google_gmail_search"
    description = "Search the user's Gmail inbox. Call this when the user asks about emails."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": 'Gmail search query (e.g., "from:boss subject:meeting")'},
            "maxResults": {"type": "number", "description": "Maximum emails to return (default 5)", "default": 5},
        },
        "required": ["query"],
    }
    status_label = "Searching your email…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        max_results = int(kwargs.get("maxResults") or 5)
        messages = []
        async with httpx.AsyncClient() as client:
            listing = await client.get(
                GMAIL_MESSAGES_URL,
                params={"q": kwargs["query"], "maxResults": max_results},
                headers=_auth(token),
                timeout=TIMEOUT,
            )
            if listing.status_code != 200:
                return {"error": f"Gmail API error: {listing.status_code}"}

            for ref in listing.json().get("messages", [])[:max_results]:
                detail = await client.get(
                    f"{GMAIL_MESSAGES_URL}/{ref['id']}",
                    params={"format": "metadata", "metadataHeaders": ["Subject", "From", "Date"]},
                    headers=_auth(token),
                    timeout=TIMEOUT,
                )
                if detail.status_code != 200:
                    continue
                data = detail.json()
                headers = (data.get("payload") or {}).get("headers", [])
                messages.append(
                    {
                        "id": ref["id"],
                        "subject": _header(headers, "Subject"),
                        "from": _header(headers, "From"),
                        "date": _header(headers, "Date"),
                        "snippet": data.get("snippet"),
                    }
                )
        return {"messages": messages}


class GmailSendTool(GoogleTool):
    name = "google_gmail_send"
    description = (
        "Send an email via the user's Gmail. Always confirm the recipient, subject, and body with the "
        "user before sending."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "to": {"type": "string", "description": "Recipient email address"},
            "subject": {"type": "string", "description": "Email subject line"},
            "body": {"type": "string", "description": "Email body text"},
            "replyToMessageId": {
                "type": "string",
                "description": "Message ID to reply to (optional - makes this a reply)",
            },
        },
        "required": ["to", "subject", "body"],
    }
    status_label = "Sending email…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        reply_to = kwargs.get("replyToMessageId")
        lines = [
            f"To: {kwargs['to']}",
            f"Subject: {kwargs['subject']}",
            'Content-Type: text/plain; charset="UTF-8"',
        ]
        if reply_to:
            lines += [f"In-Reply-To: {reply_to}", f"References: {reply_to}"]
        lines += ["", kwargs["body"]]
        raw = base64.urlsafe_b64encode("\r\n".join(lines).encode("utf-8")).decode("ascii").rstrip("=")

        payload: dict[str, Any] = {"raw": raw}
        if reply_to:
            payload["threadId"] = reply_to
        async with httpx.AsyncClient() as client:
            resp = await client.post(f"{GMAIL_MESSAGES_URL}/send", json=payload, headers=_auth(token), timeout=TIMEOUT)
        if resp.status_code != 200:
            return {"error": f"Gmail API error: {resp.status_code}"}
        return {"sent": True, "to": kwargs["to"], "subject": kwargs["subject"], "messageId": resp.json().get("id")}


class DriveSearchTool(GoogleTool):
    name = "google_drive_search"
    description = (
        "Search for files in the user's Google Drive. Call this when the user asks about documents, "
        "spreadsheets, or files."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": 'Search query for files (e.g., "budget report", "meeting notes")',
            },
            "maxResults": {"type": "number", "description": "Maximum files to return (default 10)", "default": 10},
        },
        "required": ["query"],
    }
    status_label = "Searching Google Drive…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        query = str(kwargs["query"]).replace("\\", "\\\\").replace("'", "\\'")
        params = {
            "q": f"name contains '{query}'",
            "pageSize": int(kwargs.get("maxResults") or 10),
            "fields": "files(id,name,mimeType,modifiedTime,webViewLink,size)",
            "orderBy": "modifiedTime desc",
        }
        async with httpx.AsyncClient() as client:
            resp = await client.get(DRIVE_FILES_URL, params=params, headers=_auth(token), timeout=TIMEOUT)
        if resp.status_code != 200:
            return {"error": f"Drive API error: {resp.status_code}"}

        files = []
        for item in resp.json().get("files", []):
            entry = {
                "name": item.get("name"),
                "type": _drive_file_type(item.get("mimeType")),
                "modified": item.get("modifiedTime"),
                "link": item.get("webViewLink"),
            }
            if item.get("size"):
                entry["size"] = f"{round(int(item['size']) / 1024)}KB"
            files.append(entry)
        return {"files": files}
