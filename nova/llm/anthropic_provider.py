"""Anthropic Messages API implementation of LLMProvider."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

from nova.llm.base import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, LLMProvider, text_with_documents
from nova.models import FINISH_STOP, FINISH_TOOL_CALLS, ChatMessage, ChatResponse, ToolCall, ToolDefinition

_LOGGER = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(LLMProvider):
    """LLM provider using Anthropic's messages endpoint."""

    name = "anthropic"

    def __init__(self, api_key: str, base_url: str, timeout_seconds: float = 30.0) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def _payload(
        self,
        model: str,
        messages: list[ChatMessage],
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        system_prompt, rest = split_system_message(messages)
        payload: dict[str, Any] = {
            "model": model,
            "messages": to_anthropic_messages(rest),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if system_prompt:
            payload["system"] = system_prompt
        return payload

    async def chat(
        self,
        model: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ChatResponse:
        payload = self._payload(model, messages, temperature, max_tokens)
        if tools:
            payload["tools"] = to_anthropic_tools(tools)

        async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout_seconds) as client:
            response = await client.post("/v1/messages", headers=self._headers(), json=payload)
            response.raise_for_status()
            data = response.json()

        _LOGGER.info(
            "Anthropic response: stop_reason=%r blocks=%r",
            data.get("stop_reason"),
            [block.get("type") for block in data.get("content", [])],
        )
        return from_anthropic_response(data)

    async def chat_stream(
        self,
        model: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[str]:
        payload = self._payload(model, messages, temperature, max_tokens)
        payload["stream"] = True
        if tools:
            # Histories containing tool_use blocks must declare the tools.
            payload["tools"] = to_anthropic_tools(tools)
            payload["tool_choice"] = {"type": "none"}

        async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout_seconds) as client:
            async with client.stream("POST", "/v1/messages", headers=self._headers(), json=payload) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    event = json.loads(line[len("data:"):].strip())
                    if event.get("type") == "error":
                        raise RuntimeError(f"Anthropic stream error: {event.get('error')}")
                    if event.get("type") == "message_stop":
                        break
                    delta = event.get("delta") or {}
                    if event.get("type") == "content_block_delta" and delta.get("type") == "text_delta":
                        yield delta.get("text", "")


def split_system_message(messages: list[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Anthropic takes the system prompt as a top-level field, not a message."""

    system = "\n\n".join(m.content or "" for m in messages if m.role == "system")
    return system, [m for m in messages if m.role != "system"]


def to_anthropic_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    result: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "assistant" and msg.tool_calls:
            content: list[dict[str, Any]] = []
            if msg.content:
                content.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                content.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments})
            result.append({"role": "assistant", "content": content})
        elif msg.role == "tool" and msg.tool_call_id:
            block = {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content or ""}
            last = result[-1] if result else None
            # Consecutive tool results share one user message.
            if (
                last is not None
                and last["role"] == "user"
                and isinstance(last["content"], list)
                and all(b.get("type") == "tool_result" for b in last["content"])
            ):
                last["content"].append(block)
            else:
                result.append({"role": "user", "content": [block]})
        elif msg.role == "user" and any(a.type == "image" for a in msg.attachments):
            blocks: list[dict[str, Any]] = [
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": a.mime_type, "data": a.data},
                }
                for a in msg.attachments
                if a.type == "image"
            ]
            text = text_with_documents(msg)
            if text:
                blocks.append({"type": "text", "text": text})
            result.append({"role": "user", "content": blocks})
        elif msg.role == "user":
            result.append({"role": "user", "content": text_with_documents(msg)})
        elif msg.role == "assistant":
            result.append({"role": "assistant", "content": msg.content or ""})
    return result


def to_anthropic_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [{"name": t.name, "description": t.description, "input_schema": t.parameters} for t in tools]


def from_anthropic_response(data: dict[str, Any]) -> ChatResponse:
    blocks = data.get("content") or []
    texts = [b.get("text", "") for b in blocks if b.get("type") == "text"]
    tool_calls = [
        ToolCall(id=b["id"], name=b["name"], arguments=dict(b.get("input") or {}))
        for b in blocks
        if b.get("type") == "tool_use"
    ]
    message = ChatMessage(role="assistant", content="".join(texts) if texts else None, tool_calls=tool_calls)
    finish_reason = FINISH_TOOL_CALLS if data.get("stop_reason") == "tool_use" else FINISH_STOP
    return ChatResponse(message=message, finish_reason=finish_reason)
