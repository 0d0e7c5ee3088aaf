import os
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("SPOTIFY_CLIENT_ID", "spotify-client-id")
os.environ.setdefault("SPOTIFY_CLIENT_SECRET", "spotify-client-secret")
os.environ.setdefault("SPOTIFY_REDIRECT_URI", "http://localhost:8000/api/v1/auth/callback/spotify")
os.environ.setdefault("YOUTUBE_CLIENT_ID", "youtube-client-id")
os.environ.setdefault("YOUTUBE_CLIENT_SECRET", "youtube-client-secret")
os.environ.setdefault("YOUTUBE_REDIRECT_URI", "http://localhost:8000/api/v1/auth/callback/youtube")
os.environ.setdefault("PROACTIVE_TOKEN_REFRESH", "true")

from main import app
from app.auth.sessions import AuthProvider, AuthSession, auth_session_registry
from app.services.music_providers.base import Credentials


def make_response(method: str, url: str, payload=None, status_code: int = 200, text: str | None = None) -> httpx.Response:
    """Build a real httpx.Response bound to a request."""
    request = httpx.Request(method, url)
    if text is not None:
        return httpx.Response(status_code, request=request, text=text)
    return httpx.Response(status_code, request=request, json=payload)


def make_credentials(**overrides) -> Credentials:
    data = {
        "access_token": "access-token",
        "token_type": "Bearer",
        "refresh_token": "refresh-token",
        "expires_at": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    data.update(overrides)
    return Credentials(**data)


@pytest.fixture(autouse=True)
def reset_auth_sessions():
    """Every test starts with an empty session registry."""
    auth_session_registry.clear()
    yield
    auth_session_registry.clear()


@pytest.fixture()
def client():
    """Provide a TestClient with the app lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def spotify_session():
    return AuthSession(provider=AuthProvider.spotify)


@pytest.fixture()
def youtube_session():
    return AuthSession(provider=AuthProvider.youtube)


@pytest.fixture()
def credentials():
    return make_credentials()


@pytest.fixture()
def linked_sessions():
    """Registered sessions with both Spotify and YouTube accounts linked."""
    sessions = auth_session_registry.get_or_create(None)
    sessions.get(AuthProvider.spotify).credentials = make_credentials(access_token="spotify-access")
    sessions.get(AuthProvider.youtube).credentials = make_credentials(access_token="youtube-access")
    return sessions


@pytest.fixture()
def linked_client(client, linked_sessions):
    """A TestClient whose session cookie maps to `linked_sessions`."""
    client.cookies.set("musync_session", linked_sessions.session_id)
    return client
