"""Cross-provider orchestration: refresh-aware calls and merge requests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from app.auth.oauth import ProviderAuthenticator, get_authenticator
from app.auth.sessions import AuthProvider, UserSessions
from app.config.settings import settings
from app.services.music_providers import (
    Credentials,
    MergeValidationError,
    MusicProviderClient,
    Playlist,
    ProviderAuthError,
    ProviderError,
    ProviderTransportError,
    get_music_provider,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MERGE_FIELDS = ("name", "source_provider", "source_playlist_id", "target_provider")


@dataclass(frozen=True)
class Provider:
    """Authenticator and catalog client for one provider on behalf of one session."""

    name: AuthProvider
    authenticator: ProviderAuthenticator
    client: MusicProviderClient


def get_provider(provider: str, sessions: UserSessions) -> Provider:
    try:
        auth_provider = AuthProvider(provider.lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported provider: {provider}") from exc
    return Provider(
        name=auth_provider,
        authenticator=get_authenticator(auth_provider, sessions.get(auth_provider)),
        client=get_music_provider(auth_provider.value),
    )


@dataclass(frozen=True)
class MergeRequest:
    name: str
    source_provider: AuthProvider
    source_playlist_id: str
    target_provider: AuthProvider


@dataclass(frozen=True)
class MergeReceipt:
    request: MergeRequest
    status: str
    message: str


class SyncCoordinator:
    """Runs provider calls with the single refresh-then-retry policy.

    A 401 from the catalog triggers exactly one `refresh()` and exactly one
    retry. Whatever the retry raises is surfaced to the caller, which decides
    between showing an error and sending the user back through login.
    """

    def __init__(
        self,
        *,
        proactive_refresh: bool | None = None,
        expiry_skew_seconds: int | None = None,
    ) -> None:
        self.proactive_refresh = (
            settings.PROACTIVE_TOKEN_REFRESH if proactive_refresh is None else proactive_refresh
        )
        self.expiry_skew_seconds = (
            settings.TOKEN_EXPIRY_SKEW_SECONDS if expiry_skew_seconds is None else expiry_skew_seconds
        )

    @staticmethod
    def _require_credentials(authenticator: ProviderAuthenticator) -> Credentials:
        credentials = authenticator.credentials
        if credentials is None or not authenticator.is_authorized():
            raise ProviderAuthError(f"{authenticator.config.label} account is not linked")
        return credentials

    def _should_refresh_early(self, credentials: Credentials) -> bool:
        return (
            self.proactive_refresh
            and bool(credentials.refresh_token)
            and credentials.is_expired(self.expiry_skew_seconds)
        )

    async def _call_with_refresh(
        self,
        authenticator: ProviderAuthenticator,
        operation: Callable[[Credentials], Awaitable[T]],
    ) -> T:
        credentials = self._require_credentials(authenticator)
        refreshed = False
        if self._should_refresh_early(credentials):
            # Counts as the one refresh whether or not it succeeds.
            refreshed = True
            try:
                credentials = await authenticator.refresh()
            except ProviderError as exc:
                logger.warning("Early %s token refresh failed: %s", authenticator.config.label, exc)
        try:
            return await operation(credentials)
        except ProviderAuthError:
            if refreshed:
                raise
            logger.info(
                "%s rejected the access token; refreshing once before retrying",
                authenticator.config.label,
            )
        credentials = await authenticator.refresh()
        return await operation(credentials)

    async def call_with_refresh(
        self,
        authenticator: ProviderAuthenticator,
        operation: Callable[[Credentials], Awaitable[T]],
        *,
        timeout: float | None = None,
    ) -> T:
        """Run `operation(credentials)` under the refresh-once policy.

        `timeout` bounds the whole exchange, refresh and retry included.
        """
        if timeout is None:
            return await self._call_with_refresh(authenticator, operation)
        try:
            return await asyncio.wait_for(self._call_with_refresh(authenticator, operation), timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderTransportError(
                f"{authenticator.config.label} request exceeded {timeout}s deadline"
            ) from exc

    async def fetch_with_refresh(
        self,
        authenticator: ProviderAuthenticator,
        client: MusicProviderClient,
        *,
        timeout: float | None = None,
    ) -> list[Playlist]:
        return await self.call_with_refresh(authenticator, client.fetch_playlists, timeout=timeout)

    @staticmethod
    def validate_merge_request(
        name: str | None,
        source_provider: str | None,
        source_playlist_id: str | None,
        target_provider: str | None,
    ) -> MergeRequest:
        """Check the merge form fields; playlist existence is not verified here."""
        values = dict(
            zip(MERGE_FIELDS, (name, source_provider, source_playlist_id, target_provider))
        )
        cleaned: dict[str, str] = {}
        for field_name in MERGE_FIELDS:
            value = (values[field_name] or "").strip()
            if not value:
                raise MergeValidationError(field_name)
            cleaned[field_name] = value

        providers: dict[str, AuthProvider] = {}
        for field_name in ("source_provider", "target_provider"):
            try:
                providers[field_name] = AuthProvider(cleaned[field_name].lower())
            except ValueError as exc:
                raise MergeValidationError(
                    field_name,
                    f"{field_name} must be one of: {', '.join(p.value for p in AuthProvider)}",
                ) from exc

        return MergeRequest(
            name=cleaned["name"],
            source_provider=providers["source_provider"],
            source_playlist_id=cleaned["source_playlist_id"],
            target_provider=providers["target_provider"],
        )

    def submit_merge_request(
        self,
        sessions: UserSessions,
        name: str | None,
        source_provider: str | None,
        source_playlist_id: str | None,
        target_provider: str | None,
    ) -> MergeReceipt:
        """Validate and accept a merge; the track copy itself is not performed."""
        if not sessions.has_linked_provider:
            raise ProviderAuthError("Link at least one music service before merging playlists")
        request = self.validate_merge_request(name, source_provider, source_playlist_id, target_provider)
        logger.info(
            "Accepted merge request %r (%s:%s -> %s)",
            request.name,
            request.source_provider.value,
            request.source_playlist_id,
            request.target_provider.value,
        )
        return MergeReceipt(
            request=request,
            status="accepted",
            message=(
                f"Playlist creation started: {request.name} "
                f"(from {request.source_provider.value} to {request.target_provider.value})"
            ),
        )
