"""LLM provider interface."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from nova.models import ChatMessage, ChatResponse, ToolDefinition

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1024


class LLMProvider(ABC):
    """Vendor adapter normalizing one chat-completions API.

    Transport and vendor errors propagate to the caller unchanged; there is
    no retry at this layer.
    """

    name: str

    @abstractmethod
    async def chat(
        self,
        model: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ChatResponse:
        """Non-streaming completion, used for every round that may call tools."""

    @abstractmethod
    def chat_stream(
        self,
        model: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[str]:
        """Stream text deltas of a final answer.

        ``tools`` only describes tools already used in the history; the model
        is never allowed to call one from a stream.
        """

    async def quick_chat(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """One-shot completion without tools for internal utility tasks."""

        response = await self.chat(
            model,
            [ChatMessage(role="system", content=system_prompt), ChatMessage(role="user", content=user_message)],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return (response.message.content or "").strip()


def text_with_documents(message: ChatMessage) -> str:
    """Return message text with any document attachments appended inline."""

    parts = [message.content] if message.content else []
    for attachment in message.attachments:
        if attachment.type == "document":
            parts.append(f"[Attached document: {attachment.name}]\n{attachment.data}")
    return "\n\n".join(parts)


def safe_json_loads(raw: str | None) -> dict[str, Any]:
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}
