"""Registry for gated tool registration and execution."""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

from pydantic import ValidationError, create_model

from nova.db import Database
from nova.llm.base import LLMProvider
from nova.models import ConnectedIntegration, ToolDefinition
from nova.tools.base import DEFAULT_STATUS_LABEL, ProviderNotConnected, Tool, ToolContext

LOGGER = logging.getLogger(__name__)


class ToolRegistry:
    """Explicit registry of tools, gated by the caller's connected integrations."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_definitions(self, integrations: list[ConnectedIntegration]) -> list[ToolDefinition]:
        """Built-in tools plus the tools of every connected provider, nothing else."""

        providers = {i.provider for i in integrations}
        return [
            tool.definition()
            for tool in self._tools.values()
            if tool.provider is None or tool.provider in providers
        ]

    def status_label(self, name: str) -> str:
        tool = self._tools.get(name)
        return tool.status_label if tool else DEFAULT_STATUS_LABEL

    async def execute(
        self,
        name: str,
        args: dict[str, Any],
        integrations: list[ConnectedIntegration],
        caller_id: str,
        llm: LLMProvider | None = None,
    ) -> str:
        """Run a tool and return its JSON-encoded result.

        Never raises: every failure becomes a JSON ``{"error": ...}`` string so
        that one failing tool cannot abort the surrounding loop.
        """

        tool = self._tools.get(name)
        if tool is None:
            return json.dumps({"error": f"Unknown function: {name}"})

        validated: dict[str, Any] = args
        try:
            validated = _validate_json_schema(tool.parameters_schema, args)
            result = await tool.run(ToolContext(integrations=integrations, caller_id=caller_id, llm=llm), **validated)
        except ProviderNotConnected as exc:
            result = {"error": str(exc)}
        except ValueError as exc:
            result = {"error": str(exc)}
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Tool %s failed", name, exc_info=True)
            result = {"error": f"Failed to execute {name}: {exc}"}

        output = json.dumps(result, default=str)
        succeeded = not (isinstance(result, dict) and "error" in result)
        try:
            self._db.log_tool_execution(caller_id, name, validated, output, succeeded=succeeded)
        except Exception:  # noqa: BLE001
            LOGGER.warning("Failed to log execution of %s", name, exc_info=True)
        return output


def _validate_json_schema(schema: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    props = schema.get("properties", {})
    required = set(schema.get("required", []))
    fields: dict[str, tuple[Any, Any]] = {}
    for name, config in props.items():
        typ: Any = _python_type(config.get("type", "string"))
        if "enum" in config:
            typ = Literal[tuple(config["enum"])]
        if name not in required:
            typ = typ | None
        default = ... if name in required else None
        fields[name] = (typ, default)

    model = create_model("ToolInputModel", **fields)
    try:
        value = model(**payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid input for tool: {exc}") from exc
    return value.model_dump(exclude_none=True)


def _python_type(schema_type: str) -> type[Any]:
    mapping: dict[str, type[Any]] = {
        "string": str,
        "integer": int,
        "number": float,
        "boolean": bool,
        "object": dict,
        "array": list,
    }
    return mapping.get(schema_type, str)
