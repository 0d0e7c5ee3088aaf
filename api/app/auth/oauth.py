"""OAuth2 authorization-code helpers for each linked provider."""

from __future__ import annotations

import base64
import json
import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx

from app.auth.sessions import AuthProvider, AuthSession
from app.config.settings import settings
from app.services.music_providers.base import (
    Credentials,
    CsrfMismatchError,
    NoRefreshTokenError,
    TokenExchangeError,
    clean_str,
)
from app.utils.token_expiry import expires_at_from_payload

logger = logging.getLogger(__name__)

STATE_LENGTH = 16
STATE_ALPHABET = string.ascii_letters + string.digits

SPOTIFY_SCOPES = [
    "playlist-read-private",
    "playlist-modify-private",
    "playlist-read-collaborative",
    "user-library-read",
]

YOUTUBE_SCOPES = [
    "https://www.googleapis.com/auth/youtube.readonly",
    "https://www.googleapis.com/auth/youtube",
]


@dataclass(frozen=True)
class ProviderConfig:
    provider: AuthProvider
    label: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scope: list[str]
    auth_url: str
    token_url: str
    extra_auth_params: dict[str, str] = field(default_factory=dict)


def get_provider_config(provider: AuthProvider) -> ProviderConfig:
    """Return the OAuth configuration for a provider from current settings."""
    if provider is AuthProvider.spotify:
        return ProviderConfig(
            provider=provider,
            label="Spotify",
            client_id=settings.SPOTIFY_CLIENT_ID,
            client_secret=settings.SPOTIFY_CLIENT_SECRET,
            redirect_uri=settings.SPOTIFY_REDIRECT_URI,
            scope=SPOTIFY_SCOPES,
            auth_url=settings.SPOTIFY_AUTH_URL,
            token_url=settings.SPOTIFY_TOKEN_URL,
        )

    if provider is AuthProvider.youtube:
        return ProviderConfig(
            provider=provider,
            label="YouTube Music",
            client_id=settings.YOUTUBE_CLIENT_ID,
            client_secret=settings.YOUTUBE_CLIENT_SECRET,
            redirect_uri=settings.YOUTUBE_REDIRECT_URI,
            scope=YOUTUBE_SCOPES,
            auth_url=settings.YOUTUBE_AUTH_URL,
            token_url=settings.YOUTUBE_TOKEN_URL,
            # Google only re-issues a refresh token when consent is shown again.
            extra_auth_params={"prompt": "consent"},
        )

    raise ValueError(f"Unsupported provider: {provider}")


def generate_state(length: int = STATE_LENGTH) -> str:
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(length))


class ProviderAuthenticator:
    """Runs the authorization-code flow for one provider against one AuthSession.

    The session owns the pending CSRF state and the credentials; this class
    only mutates them. Token-endpoint calls are serialized on the session lock
    so concurrent callbacks or refreshes cannot interleave.
    """

    def __init__(
        self,
        config: ProviderConfig,
        session: AuthSession,
        timeout: float | None = None,
    ) -> None:
        if config.provider is not session.provider:
            raise ValueError(f"Session belongs to {session.provider.value}, not {config.provider.value}")
        self.config = config
        self.session = session
        self.timeout = timeout if timeout is not None else settings.PROVIDER_HTTP_TIMEOUT_SECONDS

    @property
    def provider(self) -> AuthProvider:
        return self.config.provider

    def generate_auth_url(self) -> str:
        """Issue a fresh CSRF state and return the provider's consent URL.

        Any previously issued state stops validating.
        """
        state = generate_state()
        self.session.csrf_state = state
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scope),
            "access_type": "offline",
            "state": state,
            **self.config.extra_auth_params,
        }
        separator = "&" if "?" in self.config.auth_url else "?"
        return f"{self.config.auth_url}{separator}{urlencode(params)}"

    def validate_state(self, received_state: str | None) -> bool:
        """Exact match against the pending state; a match consumes it."""
        expected = self.session.csrf_state
        if not expected or not received_state:
            return False
        if not secrets.compare_digest(received_state.encode("utf-8"), expected.encode("utf-8")):
            return False
        self.session.csrf_state = None
        return True

    def require_valid_state(self, received_state: str | None) -> None:
        if not self.validate_state(received_state):
            raise CsrfMismatchError(f"{self.config.label} callback state mismatch")

    def is_authorized(self) -> bool:
        return self.session.is_authorized

    @property
    def credentials(self) -> Credentials | None:
        return self.session.credentials

    def _client_auth(self, data: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
        """Return (form data, headers) carrying the client credentials."""
        raise NotImplementedError

    async def _request_token(self, grant: dict[str, str]) -> dict[str, Any]:
        data, auth_headers = self._client_auth(dict(grant))
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
            **auth_headers,
        }
        label = self.config.label
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.config.token_url, data=data, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("%s token request failed: %s", label, exc)
            raise TokenExchangeError(f"{label} token request failed: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "%s token endpoint returned status %s for grant %s",
                label,
                response.status_code,
                grant.get("grant_type"),
            )
            raise TokenExchangeError(
                f"{label} token endpoint error ({response.status_code})",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TokenExchangeError(f"{label} token endpoint returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise TokenExchangeError(f"{label} token endpoint returned non-object JSON")
        if not clean_str(payload.get("access_token")):
            raise TokenExchangeError(f"{label} token response did not include an access token")
        return payload

    async def exchange_code(self, code: str) -> Credentials:
        """Trade an authorization code for credentials and store them."""
        auth_code = (code or "").strip()
        if not auth_code:
            raise TokenExchangeError("Authorization code is required")
        async with self.session.lock:
            payload = await self._request_token(
                {
                    "grant_type": "authorization_code",
                    "code": auth_code,
                    "redirect_uri": self.config.redirect_uri,
                }
            )
            credentials = Credentials(
                access_token=clean_str(payload.get("access_token")),
                token_type=clean_str(payload.get("token_type")) or "Bearer",
                refresh_token=clean_str(payload.get("refresh_token")) or None,
                expires_at=expires_at_from_payload(payload),
            )
            self.session.credentials = credentials
        logger.info(
            "%s authorization completed (refresh token issued: %s)",
            self.config.label,
            credentials.refresh_token is not None,
        )
        return credentials

    async def refresh(self) -> Credentials:
        """Swap the refresh token for a new access token.

        The stored refresh token survives unless the provider rotates it.
        """
        async with self.session.lock:
            current = self.session.credentials
            if current is None or not current.refresh_token:
                raise NoRefreshTokenError(f"No {self.config.label} refresh token available")
            logger.info("Refreshing %s access token", self.config.label)
            payload = await self._request_token(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": current.refresh_token,
                }
            )
            refreshed = Credentials(
                access_token=clean_str(payload.get("access_token")),
                token_type=clean_str(payload.get("token_type")) or current.token_type,
                refresh_token=clean_str(payload.get("refresh_token")) or current.refresh_token,
                expires_at=expires_at_from_payload(payload),
            )
            self.session.credentials = refreshed
        return refreshed


class SpotifyAuthenticator(ProviderAuthenticator):
    """Spotify authenticates token requests with HTTP Basic client credentials."""

    def _client_auth(self, data: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
        raw = f"{self.config.client_id}:{self.config.client_secret}".encode("utf-8")
        return data, {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}


class YouTubeAuthenticator(ProviderAuthenticator):
    """Google expects the client id and secret in the form body."""

    def _client_auth(self, data: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
        data["client_id"] = self.config.client_id
        data["client_secret"] = self.config.client_secret
        return data, {}


def get_authenticator(provider: AuthProvider, session: AuthSession) -> ProviderAuthenticator:
    """Build the authenticator for a provider bound to the caller's session."""
    config = get_provider_config(provider)
    if provider is AuthProvider.spotify:
        return SpotifyAuthenticator(config, session)
    if provider is AuthProvider.youtube:
        return YouTubeAuthenticator(config, session)
    raise ValueError(f"Unsupported provider: {provider}")
