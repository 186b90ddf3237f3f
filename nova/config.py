"""Application configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: str = Field(..., alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    anthropic_base_url: str = Field(default="https://api.anthropic.com", alias="ANTHROPIC_BASE_URL")
    default_model: str = Field(default="gpt-4o-mini", alias="NOVA_DEFAULT_MODEL")

    database_path: Path = Field(default=Path("nova.db"), alias="DATABASE_PATH")
    # Secret used to derive the key that encrypts integration tokens at rest.
    integration_encryption_key: str = Field(..., alias="INTEGRATION_ENCRYPTION_KEY")

    request_timeout_seconds: float = Field(default=30.0, alias="REQUEST_TIMEOUT_SECONDS")
    max_tool_rounds: int = Field(default=3, alias="MAX_TOOL_ROUNDS")
    history_window_messages: int = Field(default=20, alias="HISTORY_WINDOW_MESSAGES")

    image_daily_limit: int = Field(default=50, alias="IMAGE_DAILY_LIMIT")
    call_daily_limit: int = Field(default=10, alias="CALL_DAILY_LIMIT")
    max_routines_per_user: int = Field(default=20, alias="MAX_ROUTINES_PER_USER")

    routine_poll_interval_seconds: float = Field(default=60.0, alias="ROUTINE_POLL_INTERVAL_SECONDS")
    routine_max_workers: int = Field(default=4, alias="ROUTINE_MAX_WORKERS")
    # Routines run unattended, so they never use the caller's preferred (possibly premium) model.
    routine_provider: str = Field(default="openai", alias="ROUTINE_PROVIDER")

    brave_search_api_key: str = Field(default="", alias="BRAVE_SEARCH_API_KEY")
    discord_bot_token: str = Field(default="", alias="DISCORD_BOT_TOKEN")

    google_client_id: str = Field(default="", alias="GOOGLE_INTEGRATION_CLIENT_ID")
    google_client_secret: str = Field(default="", alias="GOOGLE_INTEGRATION_CLIENT_SECRET")
    spotify_client_id: str = Field(default="", alias="SPOTIFY_CLIENT_ID")
    spotify_client_secret: str = Field(default="", alias="SPOTIFY_CLIENT_SECRET")
    notion_client_id: str = Field(default="", alias="NOTION_CLIENT_ID")
    notion_client_secret: str = Field(default="", alias="NOTION_CLIENT_SECRET")
    slack_client_id: str = Field(default="", alias="SLACK_CLIENT_ID")
    slack_client_secret: str = Field(default="", alias="SLACK_CLIENT_SECRET")
    hue_client_id: str = Field(default="", alias="HUE_CLIENT_ID")
    hue_client_secret: str = Field(default="", alias="HUE_CLIENT_SECRET")
    sonos_client_id: str = Field(default="", alias="SONOS_CLIENT_ID")
    sonos_client_secret: str = Field(default="", alias="SONOS_CLIENT_SECRET")

    # Console chat identity used by the entrypoint.
    console_user_id: str = Field(default="local-user", alias="NOVA_USER_ID")


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()


def oauth_client(settings: Settings, provider: str) -> tuple[str, str]:
    """Return the (client_id, client_secret) pair configured for an OAuth provider."""

    return (
        getattr(settings, f"{provider}_client_id", ""),
        getattr(settings, f"{provider}_client_secret", ""),
    )
