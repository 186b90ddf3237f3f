"""Philips Hue lighting tools (remote CLIP v2 API)."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from nova.tools.base import Tool, ToolContext

HUE_RESOURCE_URL = "https://api.meethue.com/clip/v2/resource"
HUE_APPLICATION_KEY = "nova-ai"
TIMEOUT = 15.0

# CIE xy coordinates for the colour names the model may ask for.
COLOR_XY: dict[str, dict[str, float]] = {
    "red": {"x": 0.675, "y": 0.322},
    "blue": {"x": 0.167, "y": 0.04},
    "green": {"x": 0.409, "y": 0.518},
    "purple": {"x": 0.3, "y": 0.15},
    "orange": {"x": 0.57, "y": 0.41},
    "yellow": {"x": 0.44, "y": 0.51},
    "pink": {"x": 0.45, "y": 0.23},
    "warm white": {"x": 0.459, "y": 0.41},
    "cool white": {"x": 0.313, "y": 0.328},
}


def _headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", "hue-application-key": HUE_APPLICATION_KEY}


class HueTool(Tool):
    provider = "hue"


class HueListLightsTool(HueTool):
    name = "hue_list_lights"
    description = (
        "List all Philips Hue lights in the user's home. Returns light names, states, brightness, and colors."
    )
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}
    status_label = "Checking your lights…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"{HUE_RESOURCE_URL}/light", headers=_headers(token), timeout=TIMEOUT)
        if resp.status_code != 200:
            return {"error": f"Hue API error: {resp.status_code}"}
        return {
            "lights": [
                {
                    "id": light.get("id"),
                    "name": (light.get("metadata") or {}).get("name", "Unknown"),
                    "on": (light.get("on") or {}).get("on"),
                    "brightness": (light.get("dimming") or {}).get("brightness"),
                }
                for light in resp.json().get("data", [])
            ]
        }


class HueControlLightTool(HueTool):
    name = "hue_control_light"
    description = "Control a Philips Hue light - turn on/off, change brightness, or change color."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "lightId": {"type": "string", "description": "The light ID (from hue_list_lights)"},
            "on": {"type": "boolean", "description": "Turn light on (true) or off (false)"},
            "brightness": {"type": "number", "description": "Brightness level 0-100"},
            "color": {
                "type": "string",
                "description": (
                    'Color name (e.g., "red", "blue", "warm white", "cool white", "green", "purple", "orange")'
                ),
            },
        },
        "required": ["lightId"],
    }
    status_label = "Controlling light…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        light_id = str(kwargs["lightId"])
        body: dict[str, Any] = {}
        if kwargs.get("on") is not None:
            body["on"] = {"on": bool(kwargs["on"])}
        if kwargs.get("brightness") is not None:
            body["dimming"] = {"brightness": min(100.0, max(0.0, float(kwargs["brightness"])))}
        if kwargs.get("color"):
            xy = COLOR_XY.get(str(kwargs["color"]).lower())
            if xy is None:
                return {"error": f"Unknown color: {kwargs['color']}. Supported: {', '.join(COLOR_XY)}"}
            body["color"] = {"xy": xy}

        async with httpx.AsyncClient() as client:
            resp = await client.put(
                f"{HUE_RESOURCE_URL}/light/{quote(light_id, safe='')}",
                json=body,
                headers=_headers(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Hue API error: {resp.status_code}"}
        return {"success": True, "lightId": light_id, **body}


class HueListScenesTool(HueTool):
    name = "hue_list_scenes"
    description = "List available Philips Hue scenes that can be activated."
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}
    status_label = "Loading scenes…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"{HUE_RESOURCE_URL}/scene", headers=_headers(token), timeout=TIMEOUT)
        if resp.status_code != 200:
            return {"error": f"Hue API error: {resp.status_code}"}
        return {
            "scenes": [
                {
                    "id": scene.get("id"),
                    "name": (scene.get("metadata") or {}).get("name", "Unknown"),
                    "groupId": (scene.get("group") or {}).get("rid"),
                }
                for scene in resp.json().get("data", [])
            ]
        }


class HueActivateSceneTool(HueTool):
    name = "hue_activate_scene"
    description = 'Activate a Philips Hue scene (e.g., "Relax", "Energize", "Read").'
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {"sceneId": {"type": "string", "description": "The scene ID (from hue_list_scenes)"}},
        "required": ["sceneId"],
    }
    status_label = "Activating scene…"

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        token = ctx.token(self.provider)
        scene_id = str(kwargs["sceneId"])
        async with httpx.AsyncClient() as client:
            resp = await client.put(
                f"{HUE_RESOURCE_URL}/scene/{quote(scene_id, safe='')}",
                json={"recall": {"action": "active"}},
                headers=_headers(token),
                timeout=TIMEOUT,
            )
        if resp.status_code != 200:
            return {"error": f"Hue API error: {resp.status_code}"}
        return {"activated": True, "sceneId": scene_id}
