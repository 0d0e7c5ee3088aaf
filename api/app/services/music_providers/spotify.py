"""Spotify provider integration."""

from __future__ import annotations

from typing import Any, Sequence
from urllib.parse import urlparse

from app.config.settings import settings
from app.services.music_providers.base import (
    Credentials,
    MusicProviderClient,
    Playlist,
    ProviderAPIError,
    ProviderDecodeError,
    Track,
    clean_str,
    coerce_count,
)


class SpotifyProvider(MusicProviderClient):
    provider = "spotify"
    label = "Spotify"

    def __init__(self, timeout: float | None = None):
        super().__init__(settings.SPOTIFY_API_BASE_URL or "https://api.spotify.com/v1", timeout=timeout)

    @staticmethod
    def _first_image_url(images_payload: Any) -> str | None:
        if not isinstance(images_payload, list):
            return None
        for item in images_payload:
            if not isinstance(item, dict):
                continue
            url = item.get("url")
            if isinstance(url, str) and url.strip():
                return url
        return None

    @staticmethod
    def _extract_playlist_track_count(payload: dict[str, Any]) -> int:
        # Spotify has returned playlist totals in `tracks.total` historically
        # and now returns `items.total` in current payloads.
        for key in ("tracks", "items"):
            container = payload.get(key)
            if not isinstance(container, dict):
                continue
            raw_total = container.get("total")
            if isinstance(raw_total, int):
                return coerce_count(raw_total)
        return 0

    @staticmethod
    def _clean_id(value: str) -> str | None:
        cleaned = value.strip()
        return cleaned or None

    @classmethod
    def _normalize_resource_id(cls, value: str, resource: str) -> str | None:
        raw_value = value.strip()
        if not raw_value:
            return None
        prefix = f"spotify:{resource}:"
        if raw_value.lower().startswith(prefix):
            return cls._clean_id(raw_value.split(":", 2)[-1])
        if raw_value.startswith("http://") or raw_value.startswith("https://"):
            parsed = urlparse(raw_value)
            if "spotify.com" not in (parsed.netloc or "").lower():
                return None
            segments = [segment for segment in parsed.path.split("/") if segment]
            for index, segment in enumerate(segments[:-1]):
                if segment.lower() == resource:
                    return cls._clean_id(segments[index + 1])
            return None
        return cls._clean_id(raw_value)

    @staticmethod
    def _external_url(payload: dict[str, Any]) -> str | None:
        external_urls = payload.get("external_urls")
        url = external_urls.get("spotify") if isinstance(external_urls, dict) else None
        return url if isinstance(url, str) and url else None

    def _to_playlist(self, payload: Any) -> Playlist | None:
        if not isinstance(payload, dict):
            return None
        playlist_id = self._clean_id(str(payload.get("id") or ""))
        if not playlist_id:
            return None
        owner_payload = payload.get("owner")
        owner = ""
        if isinstance(owner_payload, dict):
            owner = clean_str(owner_payload.get("display_name")) or clean_str(owner_payload.get("id"))
        return Playlist(
            id=playlist_id,
            name=clean_str(payload.get("name")),
            description=clean_str(payload.get("description")),
            owner=owner,
            track_count=self._extract_playlist_track_count(payload),
            image_url=self._first_image_url(payload.get("images")),
            external_url=self._external_url(payload),
        )

    def _to_track(self, payload: Any) -> Track | None:
        if not isinstance(payload, dict):
            return None
        track_id = self._clean_id(str(payload.get("id") or ""))
        if not track_id:
            return None
        artists: list[str] = []
        artists_payload = payload.get("artists")
        if isinstance(artists_payload, list):
            for artist_payload in artists_payload:
                if not isinstance(artist_payload, dict):
                    continue
                name = clean_str(artist_payload.get("name"))
                if name:
                    artists.append(name)
        album_payload = payload.get("album")
        album = clean_str(album_payload.get("name")) if isinstance(album_payload, dict) else ""
        uri = clean_str(payload.get("uri")) or f"spotify:track:{track_id}"
        return Track(
            id=track_id,
            name=clean_str(payload.get("name")),
            artists=artists,
            album=album,
            duration_ms=coerce_count(payload.get("duration_ms")),
            external_id=uri,
        )

    async def fetch_playlists(self, credentials: Credentials) -> list[Playlist]:
        async with self._http_client() as client:
            payload = await self._get(client, "/me/playlists", credentials, params={"limit": self.page_size})
        items = payload.get("items")
        if not isinstance(items, list):
            raise ProviderDecodeError("Spotify playlist listing is missing `items`")
        playlists: list[Playlist] = []
        for item in items:
            mapped = self._to_playlist(item)
            if mapped:
                playlists.append(mapped)
        return playlists

    async def search_tracks(self, credentials: Credentials, query: str, limit: int = 10) -> Sequence[Track]:
        search_query = query.strip()
        if not search_query:
            return []
        safe_limit = max(1, min(limit, 50))
        async with self._http_client() as client:
            payload = await self._get(
                client,
                "/search",
                credentials,
                params={"q": search_query, "type": "track", "limit": safe_limit},
            )
        tracks_payload = payload.get("tracks")
        if not isinstance(tracks_payload, dict):
            return []
        items = tracks_payload.get("items")
        if not isinstance(items, list):
            return []
        results: list[Track] = []
        for item in items:
            mapped = self._to_track(item)
            if mapped:
                results.append(mapped)
        return results

    async def add_track_to_playlist(self, credentials: Credentials, playlist_id: str, track_id: str) -> None:
        normalized_playlist_id = self._normalize_resource_id(playlist_id, "playlist")
        if not normalized_playlist_id:
            raise ProviderAPIError("Playlist id is required", status_code=400)
        normalized_track_id = self._normalize_resource_id(track_id, "track")
        if not normalized_track_id:
            raise ProviderAPIError("Track id is required", status_code=400)
        async with self._http_client() as client:
            await self._post(
                client,
                f"/playlists/{normalized_playlist_id}/items",
                credentials,
                {"uris": [f"spotify:track:{normalized_track_id}"]},
            )

    async def _fetch_current_user_id(self, client, credentials: Credentials) -> str:
        payload = await self._get(client, "/me", credentials)
        user_id = self._clean_id(str(payload.get("id") or ""))
        if not user_id:
            raise ProviderDecodeError("Unable to read Spotify user profile id")
        return user_id

    async def create_playlist(
        self,
        credentials: Credentials,
        name: str,
        description: str = "",
        is_private: bool = True,
    ) -> Playlist:
        async with self._http_client() as client:
            user_id = await self._fetch_current_user_id(client, credentials)
            payload = await self._post(
                client,
                f"/users/{user_id}/playlists",
                credentials,
                {
                    "name": name,
                    "description": description or "",
                    "public": not is_private,
                },
            )
        mapped = self._to_playlist(payload)
        if not mapped:
            raise ProviderDecodeError("Spotify did not return the created playlist")
        return mapped
