"""Supported chat models and provider construction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from nova.config import Settings
from nova.llm.anthropic_provider import AnthropicProvider
from nova.llm.base import LLMProvider
from nova.llm.openai_provider import OpenAIProvider

ProviderName = Literal["openai", "anthropic"]


@dataclass(frozen=True, slots=True)
class ModelConfig:
    id: str
    name: str
    provider: ProviderName
    tier: Literal["standard", "pro"]
    description: str
    max_tokens: int = 4096


MODELS: dict[str, ModelConfig] = {
    "gpt-4o-mini": ModelConfig(
        "gpt-4o-mini", "GPT-4o Mini", "openai", "standard", "Fast and efficient for everyday tasks"
    ),
    "gpt-4o": ModelConfig("gpt-4o", "GPT-4o", "openai", "pro", "Most capable OpenAI model"),
    "claude-sonnet-4-5-20250929": ModelConfig(
        "claude-sonnet-4-5-20250929", "Claude Sonnet", "anthropic", "pro", "Excellent for writing and analysis"
    ),
    "claude-haiku-4-5-20251001": ModelConfig(
        "claude-haiku-4-5-20251001", "Claude Haiku", "anthropic", "standard", "Quick and lightweight"
    ),
}

DEFAULT_MODEL = "gpt-4o-mini"

# Cheapest model per vendor, used by tools that make their own quick_chat call.
INTERNAL_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-haiku-4-5-20251001",
}


def get_model_config(model_id: str) -> ModelConfig:
    """Return the model's config, falling back to the default model for unknown ids."""

    return MODELS.get(model_id, MODELS[DEFAULT_MODEL])


def internal_model(provider: LLMProvider) -> str:
    return INTERNAL_MODELS.get(provider.name, INTERNAL_MODELS["openai"])


def create_provider(name: str, settings: Settings) -> LLMProvider:
    if name == "openai":
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
    if name == "anthropic":
        return AnthropicProvider(
            api_key=settings.anthropic_api_key,
            base_url=settings.anthropic_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
    raise ValueError(f"Unknown provider: {name}")
