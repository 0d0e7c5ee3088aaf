import asyncio
import base64
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.auth import oauth
from app.auth.oauth import (
    SpotifyAuthenticator,
    YouTubeAuthenticator,
    get_authenticator,
    get_provider_config,
)
from app.auth.sessions import AuthProvider, AuthSession
from app.services.music_providers.base import CsrfMismatchError, NoRefreshTokenError, TokenExchangeError
from conftest import make_credentials, make_response


def _fake_token_client(response_factory, captured: list[dict]):
    class _FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            self.timeout = kwargs.get("timeout")

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def post(self, url: str, data: dict, headers: dict):
            captured.append({"url": url, "data": data, "headers": headers, "timeout": self.timeout})
            return response_factory(url)

    return _FakeAsyncClient


def _query(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


def test_generate_auth_url_carries_client_scope_offline_access_and_state(spotify_session):
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    url = authenticator.generate_auth_url()

    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://accounts.spotify.com/authorize"
    params = _query(url)
    assert params["client_id"] == "spotify-client-id"
    assert params["redirect_uri"] == "http://localhost:8000/api/v1/auth/callback/spotify"
    assert params["response_type"] == "code"
    assert params["access_type"] == "offline"
    assert params["scope"].split(" ") == oauth.SPOTIFY_SCOPES
    assert len(params["state"]) >= 16
    assert params["state"].isalnum()
    assert spotify_session.csrf_state == params["state"]


def test_youtube_auth_url_requests_consent_and_youtube_scopes(youtube_session):
    authenticator = get_authenticator(AuthProvider.youtube, youtube_session)

    params = _query(authenticator.generate_auth_url())

    assert params["prompt"] == "consent"
    assert params["access_type"] == "offline"
    assert "https://www.googleapis.com/auth/youtube.readonly" in params["scope"].split(" ")


def test_consecutive_auth_urls_only_validate_latest_state(spotify_session):
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    first_state = _query(authenticator.generate_auth_url())["state"]
    second_state = _query(authenticator.generate_auth_url())["state"]

    assert first_state != second_state
    assert authenticator.validate_state(first_state) is False
    assert authenticator.validate_state(second_state) is True


def test_validate_state_is_single_use_and_rejects_missing_values(spotify_session):
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)
    assert authenticator.validate_state("anything") is False

    state = _query(authenticator.generate_auth_url())["state"]
    assert authenticator.validate_state(None) is False
    assert authenticator.validate_state("") is False
    assert authenticator.validate_state(state.lower() + "x") is False
    assert authenticator.validate_state(state) is True
    assert authenticator.validate_state(state) is False


def test_spotify_exchange_code_uses_basic_auth_and_stores_credentials(spotify_session, monkeypatch):
    captured: list[dict] = []
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(
            lambda url: make_response(
                "POST",
                url,
                {
                    "access_token": "spotify-access",
                    "token_type": "Bearer",
                    "expires_in": 3600,
                    "refresh_token": "spotify-refresh",
                    "scope": "playlist-read-private",
                },
            ),
            captured,
        ),
    )
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)
    assert isinstance(authenticator, SpotifyAuthenticator)

    before = datetime.now(timezone.utc)
    credentials = asyncio.run(authenticator.exchange_code("auth-code"))

    assert len(captured) == 1
    call = captured[0]
    assert call["url"] == "https://accounts.spotify.com/api/token"
    assert call["data"] == {
        "grant_type": "authorization_code",
        "code": "auth-code",
        "redirect_uri": "http://localhost:8000/api/v1/auth/callback/spotify",
    }
    expected_basic = base64.b64encode(b"spotify-client-id:spotify-client-secret").decode("ascii")
    assert call["headers"]["Authorization"] == f"Basic {expected_basic}"
    assert call["timeout"] == 10.0

    assert authenticator.is_authorized() is True
    assert spotify_session.credentials == credentials
    assert credentials.access_token == "spotify-access"
    assert credentials.refresh_token == "spotify-refresh"
    assert before + timedelta(seconds=3590) <= credentials.expires_at <= datetime.now(timezone.utc) + timedelta(seconds=3600)


def test_youtube_exchange_code_embeds_client_credentials_in_body(youtube_session, monkeypatch):
    captured: list[dict] = []
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(
            lambda url: make_response(
                "POST",
                url,
                {"access_token": "yt-access", "token_type": "Bearer", "expires_in": 3599},
            ),
            captured,
        ),
    )
    authenticator = get_authenticator(AuthProvider.youtube, youtube_session)
    assert isinstance(authenticator, YouTubeAuthenticator)

    credentials = asyncio.run(authenticator.exchange_code("yt-code"))

    call = captured[0]
    assert call["url"] == "https://oauth2.googleapis.com/token"
    assert call["data"]["client_id"] == "youtube-client-id"
    assert call["data"]["client_secret"] == "youtube-client-secret"
    assert call["data"]["grant_type"] == "authorization_code"
    assert "Authorization" not in call["headers"]
    assert credentials.refresh_token is None
    assert youtube_session.is_authorized


def test_exchange_code_non_2xx_raises_and_leaves_session_unauthorized(spotify_session, monkeypatch):
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(
            lambda url: make_response("POST", url, {"error": "invalid_grant"}, status_code=400),
            [],
        ),
    )
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    with pytest.raises(TokenExchangeError) as exc_info:
        asyncio.run(authenticator.exchange_code("bad-code"))

    assert exc_info.value.status_code == 400
    assert "invalid_grant" in (exc_info.value.body or "")
    assert spotify_session.credentials is None
    assert authenticator.is_authorized() is False


def test_exchange_code_malformed_json_raises(spotify_session, monkeypatch):
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(lambda url: make_response("POST", url, text="<html>oops</html>"), []),
    )
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    with pytest.raises(TokenExchangeError):
        asyncio.run(authenticator.exchange_code("code"))
    assert authenticator.is_authorized() is False


def test_exchange_code_without_access_token_raises(spotify_session, monkeypatch):
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(lambda url: make_response("POST", url, {"token_type": "Bearer"}), []),
    )
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    with pytest.raises(TokenExchangeError):
        asyncio.run(authenticator.exchange_code("code"))
    assert spotify_session.credentials is None


def test_exchange_code_transport_failure_raises(youtube_session, monkeypatch):
    def _timeout(url):
        raise httpx.ConnectTimeout("timed out")

    monkeypatch.setattr(httpx, "AsyncClient", _fake_token_client(_timeout, []))
    authenticator = get_authenticator(AuthProvider.youtube, youtube_session)

    with pytest.raises(TokenExchangeError):
        asyncio.run(authenticator.exchange_code("code"))
    assert authenticator.is_authorized() is False


def test_refresh_without_refresh_token_keeps_access_token(youtube_session, monkeypatch):
    captured: list[dict] = []
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(lambda url: make_response("POST", url, {"access_token": "never"}), captured),
    )
    youtube_session.credentials = make_credentials(access_token="still-valid", refresh_token=None)
    authenticator = get_authenticator(AuthProvider.youtube, youtube_session)

    with pytest.raises(NoRefreshTokenError):
        asyncio.run(authenticator.refresh())

    assert captured == []
    assert youtube_session.credentials.access_token == "still-valid"


def test_refresh_without_any_credentials_raises(spotify_session):
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    with pytest.raises(NoRefreshTokenError):
        asyncio.run(authenticator.refresh())


def test_refresh_replaces_access_token_and_preserves_refresh_token(youtube_session, monkeypatch):
    captured: list[dict] = []
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(
            lambda url: make_response(
                "POST",
                url,
                {"access_token": "fresh-access", "expires_in": 3600, "token_type": "Bearer"},
            ),
            captured,
        ),
    )
    stale_expiry = datetime.now(timezone.utc) - timedelta(minutes=5)
    youtube_session.credentials = make_credentials(
        access_token="expired-access",
        refresh_token="existing-refresh",
        expires_at=stale_expiry,
    )
    authenticator = get_authenticator(AuthProvider.youtube, youtube_session)

    refreshed = asyncio.run(authenticator.refresh())

    assert captured[0]["data"] == {
        "grant_type": "refresh_token",
        "refresh_token": "existing-refresh",
        "client_id": "youtube-client-id",
        "client_secret": "youtube-client-secret",
    }
    assert refreshed.access_token == "fresh-access"
    assert refreshed.refresh_token == "existing-refresh"
    assert refreshed.expires_at > stale_expiry
    assert youtube_session.credentials == refreshed


def test_spotify_refresh_adopts_rotated_refresh_token(spotify_session, monkeypatch):
    captured: list[dict] = []
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(
            lambda url: make_response(
                "POST",
                url,
                {"access_token": "fresh-access", "expires_in": 3600, "refresh_token": "rotated-refresh"},
            ),
            captured,
        ),
    )
    spotify_session.credentials = make_credentials(refresh_token="old-refresh")
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    refreshed = asyncio.run(authenticator.refresh())

    assert captured[0]["headers"]["Authorization"].startswith("Basic ")
    assert "client_secret" not in captured[0]["data"]
    assert refreshed.refresh_token == "rotated-refresh"


def test_refresh_failure_leaves_credentials_untouched(spotify_session, monkeypatch):
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        _fake_token_client(
            lambda url: make_response("POST", url, {"error": "invalid_grant"}, status_code=400),
            [],
        ),
    )
    original = make_credentials(access_token="old-access", refresh_token="revoked")
    spotify_session.credentials = original
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)

    with pytest.raises(TokenExchangeError):
        asyncio.run(authenticator.refresh())

    assert spotify_session.credentials is original


def test_authenticator_rejects_session_for_other_provider():
    with pytest.raises(ValueError):
        SpotifyAuthenticator(get_provider_config(AuthProvider.spotify), AuthSession(provider=AuthProvider.youtube))


def test_require_valid_state_raises_csrf_mismatch(spotify_session):
    authenticator = get_authenticator(AuthProvider.spotify, spotify_session)
    state = _query(authenticator.generate_auth_url())["state"]

    with pytest.raises(CsrfMismatchError) as exc_info:
        authenticator.require_valid_state("not-the-state")

    assert exc_info.value.requires_reauth is False
    authenticator.require_valid_state(state)
    assert spotify_session.csrf_state is None
