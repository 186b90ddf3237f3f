"""Integration credentials: OAuth provider table, token refresh and per-turn resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from nova.config import Settings, oauth_client
from nova.crypto import TokenCipher
from nova.db import Database
from nova.models import ConnectedIntegration

LOGGER = logging.getLogger(__name__)

# Tokens expiring within this buffer are refreshed before use.
REFRESH_BUFFER = timedelta(minutes=5)


@dataclass(frozen=True, slots=True)
class OAuthProviderConfig:
    provider: str
    display_name: str
    token_url: str


OAUTH_PROVIDERS: dict[str, OAuthProviderConfig] = {
    "google": OAuthProviderConfig("google", "Google", "https://oauth2.googleapis.com/token"),
    "spotify": OAuthProviderConfig("spotify", "Spotify", "https://accounts.spotify.com/api/token"),
    "notion": OAuthProviderConfig("notion", "Notion", "https://api.notion.com/v1/oauth/token"),
    "slack": OAuthProviderConfig("slack", "Slack", "https://slack.com/api/oauth.v2.access"),
    "hue": OAuthProviderConfig("hue", "Philips Hue", "https://api.meethue.com/v2/oauth2/token"),
    "sonos": OAuthProviderConfig("sonos", "Sonos", "https://api.sonos.com/login/v3/oauth/access"),
}

# Providers connected with a long-lived token instead of an OAuth grant.
PREVIEW_PROVIDERS: dict[str, str] = {
    "whatsapp": "WhatsApp",
    "discord": "Discord",
    "phone": "AI Phone Calls",
}

ALL_PROVIDERS: tuple[str, ...] = (*OAUTH_PROVIDERS, *PREVIEW_PROVIDERS)


def is_oauth_provider(provider: str) -> bool:
    return provider in OAUTH_PROVIDERS


def display_name(provider: str) -> str:
    if provider in OAUTH_PROVIDERS:
        return OAUTH_PROVIDERS[provider].display_name
    return PREVIEW_PROVIDERS.get(provider, provider)


class TokenRefreshError(Exception):
    """Raised when a provider rejects or cannot perform a token refresh."""


class OAuthClient:
    """Performs refresh-token grants against each provider's token endpoint."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def refresh(self, provider: str, refresh_token: str) -> dict[str, Any]:
        config = OAUTH_PROVIDERS.get(provider)
        if config is None:
            raise TokenRefreshError(f"Unknown OAuth provider: {provider}")

        client_id, client_secret = oauth_client(self._settings, provider)
        async with httpx.AsyncClient(timeout=self._settings.request_timeout_seconds) as client:
            response = await client.post(
                config.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
                headers={"Accept": "application/json"},
            )
        if response.status_code != 200:
            raise TokenRefreshError(f"Token refresh failed for {provider}: HTTP {response.status_code}")
        tokens = response.json()
        if not tokens.get("access_token"):
            raise TokenRefreshError(f"Token refresh for {provider} returned no access token")
        return tokens


class CredentialStore:
    """Resolves a caller's persisted credentials into live bearer tokens."""

    def __init__(
        self,
        db: Database,
        cipher: TokenCipher,
        oauth: OAuthClient,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = db
        self._cipher = cipher
        self._oauth = oauth
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def connect(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: str | None = None,
        expires_in: int | None = None,
        email: str | None = None,
    ) -> None:
        """Persist a freshly granted credential, encrypted."""

        expires_at = self._clock() + timedelta(seconds=expires_in) if expires_in else None
        self._db.save_integration(
            user_id,
            provider,
            access_token=self._cipher.encrypt(access_token),
            refresh_token=self._cipher.encrypt(refresh_token) if refresh_token else None,
            expires_at=expires_at,
            email=email,
        )

    async def get_connected_integrations(self, user_id: str) -> list[ConnectedIntegration]:
        """Return every integration whose token is usable right now.

        Expired (or nearly expired) tokens are refreshed and written back
        before being returned. Providers whose token cannot be made valid are
        left out, which also hides their tools from the model.
        """

        connected: list[ConnectedIntegration] = []
        for row in self._db.list_integrations(user_id):
            token = await self._valid_token(row)
            if token:
                connected.append(
                    ConnectedIntegration(provider=row["provider"], access_token=token, email=row["email"])
                )
        return connected

    async def _valid_token(self, row: dict[str, Any]) -> str | None:
        provider = row["provider"]
        try:
            access_token = self._cipher.decrypt(row["access_token"])
            expires_at: datetime | None = row["expires_at"]
            now = self._clock()
            if expires_at is None or expires_at > now + REFRESH_BUFFER:
                return access_token

            if not row["refresh_token"] or not is_oauth_provider(provider):
                LOGGER.info("Token for %s expired and cannot be refreshed", provider)
                return None

            tokens = await self._oauth.refresh(provider, self._cipher.decrypt(row["refresh_token"]))
            new_refresh = tokens.get("refresh_token")
            expires_in = tokens.get("expires_in")
            self._db.update_integration_tokens(
                int(row["id"]),
                access_token=self._cipher.encrypt(tokens["access_token"]),
                refresh_token=self._cipher.encrypt(new_refresh) if new_refresh else None,
                expires_at=now + timedelta(seconds=int(expires_in)) if expires_in else None,
            )
            LOGGER.info("Refreshed %s token for user %s", provider, row["user_id"])
            return str(tokens["access_token"])
        except Exception:  # noqa: BLE001
            LOGGER.warning("Failed to get token for %s", provider, exc_info=True)
            return None
