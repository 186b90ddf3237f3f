from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nova.config import Settings
from nova.crypto import TokenCipher, TokenCryptoError
from nova.db import Database
from nova.integrations import CredentialStore, OAuthClient, TokenRefreshError, display_name

SECRET = "an-integration-secret-of-sufficient-length"
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeOAuth:
    def __init__(self, tokens: dict | None = None, error: Exception | None = None) -> None:
        self._tokens = tokens or {}
        self._error = error
        self.calls: list[tuple[str, str]] = []

    async def refresh(self, provider: str, refresh_token: str) -> dict:
        self.calls.append((provider, refresh_token))
        if self._error:
            raise self._error
        return self._tokens


def _store(tmp_path, oauth) -> tuple[Database, TokenCipher, CredentialStore]:
    db = Database(tmp_path / "nova.db")
    db.initialize()
    cipher = TokenCipher(SECRET)
    return db, cipher, CredentialStore(db, cipher, oauth, clock=lambda: NOW)


def test_cipher_round_trip_and_tamper_detection():
    cipher = TokenCipher(SECRET)

    encrypted = cipher.encrypt("ya29.token")

    assert encrypted != "ya29.token"
    assert cipher.decrypt(encrypted) == "ya29.token"
    with pytest.raises(TokenCryptoError):
        TokenCipher(SECRET + "-other").decrypt(encrypted)


def test_cipher_rejects_short_secret():
    with pytest.raises(TokenCryptoError):
        TokenCipher("short")


def test_tokens_are_stored_encrypted(tmp_path):
    db, _, store = _store(tmp_path, FakeOAuth())

    store.connect("u1", "google", "plain-access", refresh_token="plain-refresh", expires_in=3600)

    row = db.list_integrations("u1")[0]
    assert "plain" not in row["access_token"]
    assert "plain" not in row["refresh_token"]
    assert row["expires_at"] == NOW + timedelta(hours=1)


@pytest.mark.asyncio
async def test_valid_token_is_returned_without_refresh(tmp_path):
    oauth = FakeOAuth()
    _, _, store = _store(tmp_path, oauth)
    store.connect("u1", "google", "g-access", refresh_token="g-refresh", expires_in=3600, email="me@example.com")
    store.connect("u1", "discord", "d-access")

    connected = await store.get_connected_integrations("u1")

    assert [(c.provider, c.access_token, c.email) for c in connected] == [
        ("google", "g-access", "me@example.com"),
        ("discord", "d-access", None),
    ]
    assert oauth.calls == []


@pytest.mark.asyncio
async def test_token_inside_buffer_is_refreshed_and_persisted(tmp_path):
    oauth = FakeOAuth({"access_token": "new-access", "expires_in": 3600})
    db, cipher, store = _store(tmp_path, oauth)
    store.connect("u1", "spotify", "old-access", refresh_token="s-refresh", expires_in=120)

    connected = await store.get_connected_integrations("u1")

    assert connected[0].access_token == "new-access"
    assert oauth.calls == [("spotify", "s-refresh")]
    row = db.list_integrations("u1")[0]
    assert cipher.decrypt(row["access_token"]) == "new-access"
    # Providers that do not rotate refresh tokens keep the old one.
    assert cipher.decrypt(row["refresh_token"]) == "s-refresh"
    assert row["expires_at"] == NOW + timedelta(hours=1)


@pytest.mark.asyncio
async def test_refresh_failure_drops_provider(tmp_path):
    oauth = FakeOAuth(error=TokenRefreshError("HTTP 400"))
    _, _, store = _store(tmp_path, oauth)
    store.connect("u1", "google", "g-access", refresh_token="g-refresh", expires_in=60)
    store.connect("u1", "notion", "n-access")

    connected = await store.get_connected_integrations("u1")

    assert [c.provider for c in connected] == ["notion"]
    assert len(oauth.calls) == 1


@pytest.mark.asyncio
async def test_expired_token_without_refresh_token_is_unavailable(tmp_path):
    oauth = FakeOAuth({"access_token": "unused"})
    _, _, store = _store(tmp_path, oauth)
    store.connect("u1", "slack", "x-access", expires_in=30)

    assert await store.get_connected_integrations("u1") == []
    assert oauth.calls == []


@pytest.mark.asyncio
async def test_oauth_client_posts_refresh_grant():
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = {"access_token": "fresh", "expires_in": 3600}
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.post = AsyncMock(return_value=resp)
    settings = Settings(
        OPENAI_API_KEY="sk",
        INTEGRATION_ENCRYPTION_KEY=SECRET,
        GOOGLE_INTEGRATION_CLIENT_ID="cid",
        GOOGLE_INTEGRATION_CLIENT_SECRET="csecret",
        _env_file=None,
    )

    with patch("nova.integrations.httpx.AsyncClient", return_value=mock_client):
        tokens = await OAuthClient(settings).refresh("google", "r-token")

    assert tokens["access_token"] == "fresh"
    url = mock_client.post.call_args.args[0]
    data = mock_client.post.call_args.kwargs["data"]
    assert url == "https://oauth2.googleapis.com/token"
    assert data == {
        "grant_type": "refresh_token",
        "refresh_token": "r-token",
        "client_id": "cid",
        "client_secret": "csecret",
    }


@pytest.mark.asyncio
async def test_oauth_client_raises_on_http_error():
    resp = MagicMock()
    resp.status_code = 401
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.post = AsyncMock(return_value=resp)
    settings = Settings(OPENAI_API_KEY="sk", INTEGRATION_ENCRYPTION_KEY=SECRET, _env_file=None)

    with patch("nova.integrations.httpx.AsyncClient", return_value=mock_client):
        with pytest.raises(TokenRefreshError):
            await OAuthClient(settings).refresh("spotify", "r-token")
    with pytest.raises(TokenRefreshError):
        await OAuthClient(settings).refresh("discord", "r-token")


def test_display_names():
    assert display_name("hue") == "Philips Hue"
    assert display_name("phone") == "AI Phone Calls"
    assert display_name("unknown") == "unknown"
