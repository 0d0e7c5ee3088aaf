"""Provider playlist routes"""
from fastapi import APIRouter, Depends, status

from app.api.v1.routes.common import coordinator, to_http_exception
from app.auth.dependencies import get_user_sessions
from app.auth.sessions import AuthProvider, UserSessions
from app.config.settings import settings
from app.schemas.catalog import (
    MergeReceiptOut,
    MergeRequestIn,
    MusicProvider,
    PlaylistCreate,
    PlaylistOut,
    TrackAddRequest,
)
from app.services.music_providers import Playlist, ProviderError
from app.services.sync import get_provider

router = APIRouter()


def _to_playlist_out(playlist: Playlist) -> PlaylistOut:
    return PlaylistOut.model_validate(playlist)


def _known_provider(value: str | None) -> AuthProvider | None:
    try:
        return AuthProvider((value or "").strip().lower())
    except ValueError:
        return None


@router.post("/merge", response_model=MergeReceiptOut, status_code=status.HTTP_202_ACCEPTED)
async def create_merged_playlist(
    payload: MergeRequestIn,
    sessions: UserSessions = Depends(get_user_sessions),
):
    """Validate a merge request between two providers and accept it."""
    try:
        receipt = coordinator.submit_merge_request(
            sessions,
            name=payload.playlist_name,
            source_provider=payload.source_service,
            source_playlist_id=payload.source_playlist,
            target_provider=payload.target_service,
        )
    except ProviderError as exc:
        raise to_http_exception(exc, _known_provider(payload.source_service)) from exc
    return MergeReceiptOut(
        status=receipt.status,
        message=receipt.message,
        name=receipt.request.name,
        source_provider=receipt.request.source_provider.value,
        source_playlist_id=receipt.request.source_playlist_id,
        target_provider=receipt.request.target_provider.value,
    )


@router.get("/{provider}", response_model=list[PlaylistOut])
async def list_provider_playlists(
    provider: MusicProvider,
    sessions: UserSessions = Depends(get_user_sessions),
):
    """List the current session's playlists on a provider."""
    bundle = get_provider(provider, sessions)
    try:
        playlists = await coordinator.fetch_with_refresh(
            bundle.authenticator, bundle.client, timeout=settings.PROVIDER_REQUEST_DEADLINE_SECONDS
        )
    except ProviderError as exc:
        raise to_http_exception(exc, provider) from exc
    return [_to_playlist_out(playlist) for playlist in playlists]


@router.post("/{provider}", response_model=PlaylistOut, status_code=status.HTTP_201_CREATED)
async def create_provider_playlist(
    provider: MusicProvider,
    payload: PlaylistCreate,
    sessions: UserSessions = Depends(get_user_sessions),
):
    """Create a playlist on the provider."""
    bundle = get_provider(provider, sessions)

    async def _create(credentials):
        return await bundle.client.create_playlist(
            credentials,
            name=payload.name,
            description=payload.description,
            is_private=payload.is_private,
        )

    try:
        playlist = await coordinator.call_with_refresh(
            bundle.authenticator, _create, timeout=settings.PROVIDER_REQUEST_DEADLINE_SECONDS
        )
    except ProviderError as exc:
        raise to_http_exception(exc, provider) from exc
    return _to_playlist_out(playlist)


@router.post("/{provider}/{playlist_id}/tracks", status_code=status.HTTP_204_NO_CONTENT)
async def add_track_to_provider_playlist(
    provider: MusicProvider,
    playlist_id: str,
    payload: TrackAddRequest,
    sessions: UserSessions = Depends(get_user_sessions),
):
    """Add one track to a provider playlist."""
    bundle = get_provider(provider, sessions)

    async def _add(credentials):
        await bundle.client.add_track_to_playlist(credentials, playlist_id, payload.track_id)

    try:
        await coordinator.call_with_refresh(
            bundle.authenticator, _add, timeout=settings.PROVIDER_REQUEST_DEADLINE_SECONDS
        )
    except ProviderError as exc:
        raise to_http_exception(exc, provider) from exc