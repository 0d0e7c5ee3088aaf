from app.services.music_providers.base import (
    Credentials,
    MusicProviderClient,
    Playlist,
    Track,
    ProviderError,
    ProviderErrorKind,
    ProviderAuthError,
    ProviderAPIError,
    ProviderDecodeError,
    ProviderTransportError,
    TokenExchangeError,
    NoRefreshTokenError,
    CsrfMismatchError,
    MergeValidationError,
    select_thumbnail_url,
)
from app.services.music_providers.factory import get_music_provider

__all__ = [
    "Credentials",
    "MusicProviderClient",
    "Playlist",
    "Track",
    "ProviderError",
    "ProviderErrorKind",
    "ProviderAuthError",
    "ProviderAPIError",
    "ProviderDecodeError",
    "ProviderTransportError",
    "TokenExchangeError",
    "NoRefreshTokenError",
    "CsrfMismatchError",
    "MergeValidationError",
    "select_thumbnail_url",
    "get_music_provider",
]
