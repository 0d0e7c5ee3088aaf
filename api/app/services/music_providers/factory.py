"""Factory for music provider clients."""

from app.services.music_providers.base import MusicProviderClient
from app.services.music_providers.spotify import SpotifyProvider
from app.services.music_providers.youtube import YouTubeMusicProvider


def get_music_provider(provider: str) -> MusicProviderClient:
    provider = provider.lower()
    if provider == "spotify":
        return SpotifyProvider()
    if provider == "youtube":
        return YouTubeMusicProvider()
    raise ValueError(f"Unsupported provider: {provider}")
