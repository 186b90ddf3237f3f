"""Translation tool using a one-shot completion on the active provider."""

from __future__ import annotations

from typing import Any

from nova.llm.catalog import internal_model
from nova.tools.base import Tool, ToolContext


class TranslateTextTool(Tool):
    name = "translate_text"
    description = "Translate text between languages. Call this when the user asks to translate something."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "Text to translate"},
            "targetLanguage": {
                "type": "string",
                "description": 'Target language (e.g., "Swedish", "Spanish", "Japanese")',
            },
            "sourceLanguage": {
                "type": "string",
                "description": "Source language (optional, auto-detected if omitted)",
            },
        },
        "required": ["text", "targetLanguage"],
    }
    status_label = "Translating…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        if ctx.llm is None:
            return {"error": "Translation failed"}
        text = str(kwargs["text"])
        target = str(kwargs["targetLanguage"])
        source = kwargs.get("sourceLanguage")

        direction = f"from {source} to {target}" if source else f"to {target}"
        translated = await ctx.llm.quick_chat(
            internal_model(ctx.llm),
            f"You are a translator. Translate the following text {direction}. "
            "Return ONLY the translated text, nothing else.",
            text,
            temperature=0.3,
            max_tokens=1000,
        )
        result: dict[str, Any] = {"original": text, "translated": translated, "targetLanguage": target}
        if source:
            result["sourceLanguage"] = source
        return result
