"""OpenAI chat-completions implementation of LLMProvider."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

from nova.llm.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    LLMProvider,
    safe_json_loads,
    text_with_documents,
)
from nova.models import FINISH_STOP, FINISH_TOOL_CALLS, ChatMessage, ChatResponse, ToolCall, ToolDefinition

_LOGGER = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider using OpenAI's chat completions endpoint."""

    name = "openai"

    def __init__(self, api_key: str, base_url: str, timeout_seconds: float = 30.0) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def chat(
        self,
        model: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ChatResponse:
        payload: dict[str, Any] = {
            "model": model,
            "messages": to_openai_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = to_openai_tools(tools)

        async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout_seconds) as client:
            response = await client.post("/chat/completions", headers=self._headers(), json=payload)
            response.raise_for_status()
            data = response.json()

        choice = data["choices"][0]
        _LOGGER.info(
            "OpenAI response: finish_reason=%r content=%r tool_calls=%d",
            choice.get("finish_reason"),
            (choice["message"].get("content") or "")[:200],
            len(choice["message"].get("tool_calls") or []),
        )
        return ChatResponse(
            message=from_openai_message(choice["message"]),
            finish_reason=normalize_finish_reason(choice.get("finish_reason")),
        )

    async def chat_stream(
        self,
        model: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[str]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": to_openai_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }
        if tools:
            payload["tools"] = to_openai_tools(tools)
            payload["tool_choice"] = "none"

        async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout_seconds) as client:
            async with client.stream(
                "POST", "/chat/completions", headers=self._headers(), json=payload
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    chunk = json.loads(data)
                    choices = chunk.get("choices") or []
                    delta = choices[0].get("delta", {}).get("content") if choices else None
                    if delta:
                        yield delta


def to_openai_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    result: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool" and msg.tool_call_id:
            result.append({"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content or ""})
        elif msg.role == "assistant" and msg.tool_calls:
            result.append(
                {
                    "role": "assistant",
                    "content": msg.content,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                        }
                        for tc in msg.tool_calls
                    ],
                }
            )
        elif msg.role == "user" and any(a.type == "image" for a in msg.attachments):
            parts: list[dict[str, Any]] = []
            text = text_with_documents(msg)
            if text:
                parts.append({"type": "text", "text": text})
            for attachment in msg.attachments:
                if attachment.type == "image":
                    parts.append(
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:{attachment.mime_type};base64,{attachment.data}",
                                "detail": "auto",
                            },
                        }
                    )
            result.append({"role": "user", "content": parts})
        elif msg.role == "user":
            result.append({"role": "user", "content": text_with_documents(msg)})
        else:
            result.append({"role": msg.role, "content": msg.content or ""})
    return result


def to_openai_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {"name": t.name, "description": t.description, "parameters": t.parameters},
        }
        for t in tools
    ]


def from_openai_message(message: dict[str, Any]) -> ChatMessage:
    tool_calls = [
        ToolCall(
            id=tc.get("id", ""),
            name=tc.get("function", {}).get("name", ""),
            arguments=safe_json_loads(tc.get("function", {}).get("arguments")),
        )
        for tc in message.get("tool_calls") or []
        if tc.get("type", "function") == "function"
    ]
    return ChatMessage(role="assistant", content=message.get("content"), tool_calls=tool_calls)


def normalize_finish_reason(reason: str | None) -> str:
    return FINISH_TOOL_CALLS if reason == "tool_calls" else FINISH_STOP
