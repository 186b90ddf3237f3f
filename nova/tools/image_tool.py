"""Image generation through the OpenAI images endpoint, metered per caller per day."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from nova.rate_limit import RateLimiter
from nova.tools.base import Tool, ToolContext

LOGGER = logging.getLogger(__name__)

IMAGE_MODEL = "dall-e-3"
IMAGE_SIZES = ["1024x1024", "1024x1792", "1792x1024"]


class GenerateImageTool(Tool):
    name = "generate_image"
    description = (
        "Generate an image using DALL-E based on a text description. Call this when the user asks you "
        "to create, draw, or generate an image."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "Detailed description of the image to generate"},
            "size": {
                "type": "string",
                "enum": IMAGE_SIZES,
                "description": "Image size (default 1024x1024)",
                "default": "1024x1024",
            },
        },
        "required": ["prompt"],
    }
    status_label = "Generating image… (this may take a moment)"

    def __init__(
        self,
        rate_limiter: RateLimiter,
        api_key: str,
        base_url: str,
        daily_limit: int = 50,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._api_key = api_key
        self._base_url = base_url
        self._daily_limit = daily_limit
        self._timeout_seconds = timeout_seconds

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        prompt = str(kwargs["prompt"])
        size = str(kwargs.get("size") or "1024x1024")

        quota = self._rate_limiter.check(f"dalle:{ctx.caller_id}", self._daily_limit)
        if not quota.allowed:
            return {
                "error": f"Daily image generation limit reached ({self._daily_limit}/day). Try again tomorrow.",
                "remaining": 0,
                "limit": self._daily_limit,
            }

        async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout_seconds) as client:
            resp = await client.post(
                "/images/generations",
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"model": IMAGE_MODEL, "prompt": prompt, "n": 1, "size": size},
            )
        if resp.status_code != 200:
            LOGGER.warning("Image generation failed: HTTP %s", resp.status_code)
            return {"error": f"Image generation failed: HTTP {resp.status_code}"}

        images = resp.json().get("data") or []
        image_url = images[0].get("url") if images else None
        if not image_url:
            return {"error": "Failed to generate image"}
        return {
            "imageUrl": image_url,
            "revisedPrompt": images[0].get("revised_prompt"),
            "size": size,
            "imagesRemaining": quota.remaining,
        }
