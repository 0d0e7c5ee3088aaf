"""Base classes for music provider integrations."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Sequence

import httpx

from app.config.settings import settings

logger = logging.getLogger(__name__)

THUMBNAIL_PREFERENCE = ("maxres", "high", "medium", "default")


class ProviderErrorKind(str, Enum):
    csrf_mismatch = "csrf_mismatch"
    token_exchange = "token_exchange"
    unauthorized = "unauthorized"
    no_refresh_token = "no_refresh_token"
    api = "api"
    decode = "decode"
    transport = "transport"
    validation = "validation"


class ProviderError(Exception):
    """Base for every provider-facing failure; `kind` drives control flow."""

    kind: ProviderErrorKind

    @property
    def requires_reauth(self) -> bool:
        return self.kind in {
            ProviderErrorKind.unauthorized,
            ProviderErrorKind.no_refresh_token,
            ProviderErrorKind.token_exchange,
        }


class CsrfMismatchError(ProviderError):
    """Raised when an OAuth callback carries an unexpected state value."""

    kind = ProviderErrorKind.csrf_mismatch


class TokenExchangeError(ProviderError):
    """Raised when the token endpoint rejects a code exchange or refresh."""

    kind = ProviderErrorKind.token_exchange

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderAuthError(ProviderError):
    """Raised when the provider rejects the access token (HTTP 401)."""

    kind = ProviderErrorKind.unauthorized


class NoRefreshTokenError(ProviderError):
    """Raised when a refresh is requested but no refresh token was issued."""

    kind = ProviderErrorKind.no_refresh_token


class ProviderAPIError(ProviderError):
    """Raised when provider API returns a non-auth error.

    `body` is the provider's raw response body, passed through untouched.
    """

    kind = ProviderErrorKind.api

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderDecodeError(ProviderError):
    """Raised when a provider response body is not the JSON we expect."""

    kind = ProviderErrorKind.decode


class ProviderTransportError(ProviderError):
    """Raised when a provider call fails before a response arrives (timeout, network)."""

    kind = ProviderErrorKind.transport


class MergeValidationError(ProviderError):
    """Raised when a merge request is missing a required field."""

    kind = ProviderErrorKind.validation

    def __init__(self, field_name: str, message: str | None = None) -> None:
        super().__init__(message or f"{field_name} is required")
        self.field = field_name


@dataclass(frozen=True)
class Credentials:
    access_token: str
    token_type: str
    expires_at: datetime
    refresh_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def is_expired(self, skew_seconds: int = 0) -> bool:
        now = datetime.now(timezone.utc) + timedelta(seconds=skew_seconds)
        return self.expires_at <= now


@dataclass(frozen=True)
class Playlist:
    id: str
    name: str
    description: str = ""
    owner: str = ""
    track_count: int = 0
    image_url: str | None = None
    external_url: str | None = None


@dataclass(frozen=True)
class Track:
    id: str
    name: str
    artists: list[str] = field(default_factory=list)
    album: str = ""
    duration_ms: int = 0
    external_id: str = ""


def select_thumbnail_url(thumbnails: Any) -> str | None:
    """Return the URL of the best available thumbnail (maxres > high > medium > default)."""
    if not isinstance(thumbnails, Mapping):
        return None
    for quality in THUMBNAIL_PREFERENCE:
        thumbnail = thumbnails.get(quality)
        if not isinstance(thumbnail, Mapping):
            continue
        url = thumbnail.get("url")
        if isinstance(url, str) and url.strip():
            return url
    return None


def coerce_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


def clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class MusicProviderClient:
    """Abstract provider catalog client.

    Every call takes the caller's current `Credentials`; the client itself
    holds no token state, so a refreshed token is picked up on the next call.
    """

    provider: str
    label: str = "Provider"
    page_size: int = 50

    def __init__(self, base_url: str, timeout: float | None = None):
        self.base_url = base_url
        self.timeout = timeout if timeout is not None else settings.PROVIDER_HTTP_TIMEOUT_SECONDS

    def _headers(self, credentials: Credentials) -> dict[str, str]:
        token_type = (credentials.token_type or "Bearer").strip() or "Bearer"
        if token_type.lower() == "bearer":
            token_type = "Bearer"
        return {
            "Authorization": f"{token_type} {credentials.access_token}",
            "Accept": "application/json",
        }

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    @staticmethod
    def _truncate(value: str, *, max_chars: int = 600) -> str:
        text = value.strip().replace("\n", " ")
        return text if len(text) <= max_chars else f"{text[:max_chars]}..."

    def _raise_for_status(self, response: httpx.Response, method: str, path: str) -> None:
        if response.is_success:
            return
        status_code = response.status_code
        body = response.text
        if status_code == 401:
            logger.warning("%s auth error on %s %s (status=%s)", self.label, method, path, status_code)
            raise ProviderAuthError(f"{self.label} authorization expired or invalid")
        logger.error(
            "%s API error on %s %s (status=%s, body=%s)",
            self.label,
            method,
            path,
            status_code,
            self._truncate(body) if body else "-",
        )
        raise ProviderAPIError(
            f"{self.label} API error ({status_code})",
            status_code=status_code,
            body=body,
        )

    def _decode(self, response: httpx.Response, path: str) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ProviderDecodeError(f"{self.label} returned malformed JSON for {path}") from exc

    def _decode_object(self, response: httpx.Response, path: str) -> dict[str, Any]:
        payload = self._decode(response, path)
        if not isinstance(payload, dict):
            raise ProviderDecodeError(f"{self.label} returned an unexpected payload for {path}")
        return payload

    async def _get(
        self,
        client: httpx.AsyncClient,
        path: str,
        credentials: Credentials,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await client.get(path, headers=self._headers(credentials), params=params)
        except httpx.HTTPError as exc:
            raise ProviderTransportError(f"{self.label} request to {path} failed: {exc}") from exc
        self._raise_for_status(response, "GET", path)
        return self._decode_object(response, path)

    async def _post(
        self,
        client: httpx.AsyncClient,
        path: str,
        credentials: Credentials,
        payload: dict[str, Any],
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await client.post(
                path,
                headers=self._headers(credentials),
                params=params,
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise ProviderTransportError(f"{self.label} request to {path} failed: {exc}") from exc
        self._raise_for_status(response, "POST", path)
        return self._decode_object(response, path)

    async def fetch_playlists(self, credentials: Credentials) -> list[Playlist]:
        """Return the first page (up to `page_size`) of the user's playlists."""
        raise NotImplementedError

    async def search_tracks(self, credentials: Credentials, query: str, limit: int = 10) -> Sequence[Track]:
        """Search tracks by free-text query."""
        raise NotImplementedError

    async def add_track_to_playlist(self, credentials: Credentials, playlist_id: str, track_id: str) -> None:
        raise NotImplementedError

    async def create_playlist(
        self,
        credentials: Credentials,
        name: str,
        description: str = "",
        is_private: bool = True,
    ) -> Playlist:
        raise NotImplementedError
