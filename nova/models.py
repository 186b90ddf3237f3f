"""Core domain models used across layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]

FINISH_STOP = "stop"
FINISH_TOOL_CALLS = "tool_calls"


@dataclass(slots=True)
class FileAttachment:
    """Image (base64 data) or document (extracted text) attached to a user message."""

    type: Literal["image", "document"]
    name: str
    mime_type: str
    data: str


@dataclass(slots=True)
class ToolCall:
    """Tool invocation requested by the model within one inference."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ChatMessage:
    """Vendor-neutral chat message.

    A ``tool`` message carries exactly one ``tool_call_id`` that refers to a
    tool call made by an earlier assistant message of the same turn.
    """

    role: Role
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    attachments: list[FileAttachment] = field(default_factory=list)


@dataclass(slots=True)
class ChatResponse:
    """Normalized result of a non-streaming completion."""

    message: ChatMessage
    finish_reason: str = FINISH_STOP


@dataclass(slots=True)
class ToolDefinition:
    """Schema advertised to the model for one tool."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass(slots=True)
class ConnectedIntegration:
    """Live credential for one provider, resolved fresh for a single turn or routine tick."""

    provider: str
    access_token: str
    email: str | None = None


@dataclass(slots=True)
class ToolStep:
    """One step of a routine's tool chain."""

    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"toolName": self.tool_name, "args": self.args}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolStep:
        return cls(tool_name=str(data["toolName"]), args=dict(data.get("args") or {}))


@dataclass(slots=True)
class Routine:
    """Persisted, cron-scheduled chain of tool steps."""

    id: int
    user_id: str
    name: str
    schedule: str
    steps: list[ToolStep]
    enabled: bool = True
    description: str | None = None
    next_run: datetime | None = None
    last_run: datetime | None = None


@dataclass(slots=True)
class StepResult:
    """Raw result string of one completed routine step."""

    tool: str
    result: str


@dataclass(slots=True)
class RoutineExecution:
    """Audit record for one run of a routine."""

    id: int
    routine_id: int
    status: Literal["running", "completed", "failed"]
    results: list[StepResult] = field(default_factory=list)
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
