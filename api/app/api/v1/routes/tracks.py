"""Provider track search routes"""
from fastapi import APIRouter, Depends, Query

from app.api.v1.routes.common import coordinator, to_http_exception
from app.auth.dependencies import get_user_sessions
from app.auth.sessions import UserSessions
from app.config.settings import settings
from app.schemas.catalog import MusicProvider, TrackOut
from app.services.music_providers import ProviderError
from app.services.sync import get_provider

router = APIRouter()


@router.get("/{provider}/search", response_model=list[TrackOut])
async def search_provider_tracks(
    provider: MusicProvider,
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    sessions: UserSessions = Depends(get_user_sessions),
):
    """Search provider tracks by text."""
    bundle = get_provider(provider, sessions)

    async def _search(credentials):
        return await bundle.client.search_tracks(credentials, q, limit=limit)

    try:
        tracks = await coordinator.call_with_refresh(
            bundle.authenticator, _search, timeout=settings.PROVIDER_REQUEST_DEADLINE_SECONDS
        )
    except ProviderError as exc:
        raise to_http_exception(exc, provider) from exc
    return [TrackOut.model_validate(track) for track in tracks]
