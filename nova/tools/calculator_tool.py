"""Calculator tool backed by the expression parser in nova.mathexpr."""

from __future__ import annotations

from typing import Any

from nova.mathexpr import ExpressionError, evaluate
from nova.tools.base import Tool, ToolContext


class CalculateTool(Tool):
    name = "calculate"
    description = (
        "Evaluate a mathematical expression. Call this for calculations, unit conversions, or math. "
        "Supports +, -, *, /, **, ^, %, sqrt(), sin(), cos(), tan(), log(), ceil(), floor(), round(), "
        "abs(), min(), max(), pow(), PI, E."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "expression": {
                "type": "string",
                "description": 'Math expression (e.g., "sqrt(144) + 5 * 3", "(100 * 1.25) / 4")',
            },
        },
        "required": ["expression"],
    }
    status_label = "Calculating…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        expression = str(kwargs["expression"])
        try:
            result = evaluate(expression)
        except ExpressionError as exc:
            return {"error": f"Failed to evaluate {expression!r}: {exc}"}
        return {"expression": expression, "result": int(result) if result.is_integer() else result}
