import pytest

from app.services.music_providers.factory import get_music_provider
from app.services.music_providers.spotify import SpotifyProvider
from app.services.music_providers.youtube import YouTubeMusicProvider


def test_get_music_provider_returns_spotify_provider():
    provider = get_music_provider("spotify")
    assert isinstance(provider, SpotifyProvider)


def test_get_music_provider_returns_youtube_provider():
    provider = get_music_provider("YouTube")
    assert isinstance(provider, YouTubeMusicProvider)
    assert provider.base_url == "https://www.googleapis.com/youtube/v3"


def test_get_music_provider_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_music_provider("soundcloud")
