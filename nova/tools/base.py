"""Tool contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from nova.integrations import display_name
from nova.llm.base import LLMProvider
from nova.models import ConnectedIntegration, ToolDefinition

DEFAULT_STATUS_LABEL = "Working on it…"


class ProviderNotConnected(Exception):
    """Raised when a tool needs a credential the caller does not currently hold."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{display_name(provider)} not connected")
        self.provider = provider


@dataclass(slots=True)
class ToolContext:
    """Per-invocation inputs shared by every tool handler."""

    integrations: list[ConnectedIntegration] = field(default_factory=list)
    caller_id: str = "anon"
    llm: LLMProvider | None = None

    def token(self, provider: str) -> str:
        for integration in self.integrations:
            if integration.provider == provider:
                return integration.access_token
        raise ProviderNotConnected(provider)


class Tool(ABC):
    """Base class for all assistant tools.

    ``provider`` is ``None`` for built-in tools; otherwise the tool is only
    advertised and usable while the caller has that provider connected.
    """

    name: str
    description: str
    parameters_schema: dict[str, Any]
    provider: str | None = None
    status_label: str = DEFAULT_STATUS_LABEL

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=self.parameters_schema)

    @abstractmethod
    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        """Execute tool with validated arguments and return a JSON-serializable result."""
