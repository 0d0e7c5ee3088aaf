"""YouTube Music provider integration (YouTube Data API v3)."""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Sequence

import httpx

from app.config.settings import settings
from app.services.music_providers.base import (
    Credentials,
    MusicProviderClient,
    Playlist,
    ProviderAPIError,
    ProviderDecodeError,
    ProviderError,
    Track,
    clean_str,
    coerce_count,
    select_thumbnail_url,
)

logger = logging.getLogger(__name__)

MUSIC_VIDEO_CATEGORY_ID = "10"
TOPIC_CHANNEL_SUFFIX = " - Topic"
ENRICHMENT_CONCURRENCY = 8


class YouTubeMusicProvider(MusicProviderClient):
    provider = "youtube"
    label = "YouTube Music"

    def __init__(self, timeout: float | None = None):
        super().__init__(
            settings.YOUTUBE_API_BASE_URL or "https://www.googleapis.com/youtube/v3",
            timeout=timeout,
        )

    @staticmethod
    def playlist_url(playlist_id: str) -> str:
        return f"https://music.youtube.com/playlist?list={playlist_id}"

    @staticmethod
    def watch_url(video_id: str) -> str:
        return f"https://music.youtube.com/watch?v={video_id}"

    @staticmethod
    def _artist_from_channel(channel_title: str) -> str:
        # Auto-generated artist channels are named "<Artist> - Topic".
        if channel_title.endswith(TOPIC_CHANNEL_SUFFIX):
            return channel_title[: -len(TOPIC_CHANNEL_SUFFIX)].strip()
        return channel_title

    def _to_playlist(self, payload: Any) -> Playlist | None:
        if not isinstance(payload, dict):
            return None
        playlist_id = clean_str(payload.get("id"))
        if not playlist_id:
            return None
        snippet = payload.get("snippet")
        snippet = snippet if isinstance(snippet, dict) else {}
        content_details = payload.get("contentDetails")
        content_details = content_details if isinstance(content_details, dict) else {}
        return Playlist(
            id=playlist_id,
            name=clean_str(snippet.get("title")),
            description=clean_str(snippet.get("description")),
            owner=clean_str(snippet.get("channelTitle")),
            track_count=coerce_count(content_details.get("itemCount")),
            image_url=select_thumbnail_url(snippet.get("thumbnails")),
            external_url=self.playlist_url(playlist_id),
        )

    def _to_track(self, payload: Any) -> Track | None:
        if not isinstance(payload, dict):
            return None
        id_payload = payload.get("id")
        if isinstance(id_payload, dict):
            video_id = clean_str(id_payload.get("videoId"))
        else:
            video_id = clean_str(id_payload)
        if not video_id:
            return None
        snippet = payload.get("snippet")
        snippet = snippet if isinstance(snippet, dict) else {}
        artist = self._artist_from_channel(clean_str(snippet.get("channelTitle")))
        return Track(
            id=video_id,
            name=clean_str(snippet.get("title")),
            artists=[artist] if artist else [],
            album="",
            duration_ms=0,
            external_id=self.watch_url(video_id),
        )

    async def _enrich_playlist(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        playlist: Playlist,
    ) -> Playlist:
        payload = await self._get(
            client,
            "/playlistItems",
            credentials,
            params={
                "part": "snippet,contentDetails",
                "playlistId": playlist.id,
                "maxResults": 1,
            },
        )
        page_info = payload.get("pageInfo")
        track_count = playlist.track_count
        if isinstance(page_info, dict) and "totalResults" in page_info:
            track_count = coerce_count(page_info.get("totalResults"))
        image_url = playlist.image_url
        items = payload.get("items")
        if isinstance(items, list) and items and isinstance(items[0], dict):
            first_snippet = items[0].get("snippet")
            if isinstance(first_snippet, dict):
                image_url = select_thumbnail_url(first_snippet.get("thumbnails")) or image_url
        return replace(playlist, track_count=track_count, image_url=image_url)

    async def fetch_playlists(self, credentials: Credentials) -> list[Playlist]:
        async with self._http_client() as client:
            payload = await self._get(
                client,
                "/playlists",
                credentials,
                params={
                    "part": "snippet,contentDetails",
                    "mine": "true",
                    "maxResults": self.page_size,
                },
            )
            items = payload.get("items")
            if not isinstance(items, list):
                raise ProviderDecodeError("YouTube playlist listing is missing `items`")
            listed = [mapped for mapped in (self._to_playlist(item) for item in items) if mapped]
            semaphore = asyncio.Semaphore(ENRICHMENT_CONCURRENCY)

            async def _enrich_or_keep(playlist: Playlist) -> Playlist:
                async with semaphore:
                    try:
                        return await self._enrich_playlist(client, credentials, playlist)
                    except ProviderError as exc:
                        logger.warning(
                            "Skipping detail enrichment for YouTube playlist %s: %s",
                            playlist.id,
                            exc,
                        )
                        return playlist

            # gather keeps listing order.
            return list(await asyncio.gather(*(_enrich_or_keep(playlist) for playlist in listed)))

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
                params={
                    "part": "snippet",
                    "q": search_query,
                    "type": "video",
                    "videoCategoryId": MUSIC_VIDEO_CATEGORY_ID,
                    "maxResults": safe_limit,
                },
            )
        items = payload.get("items")
        if not isinstance(items, list):
            return []
        results: list[Track] = []
        for item in items:
            mapped = self._to_track(item)
            if mapped:
                results.append(mapped)
        return results

    async def add_track_to_playlist(self, credentials: Credentials, playlist_id: str, track_id: str) -> None:
        playlist_ref = playlist_id.strip()
        video_id = track_id.strip()
        if not playlist_ref:
            raise ProviderAPIError("Playlist id is required", status_code=400)
        if not video_id:
            raise ProviderAPIError("Track id is required", status_code=400)
        async with self._http_client() as client:
            await self._post(
                client,
                "/playlistItems",
                credentials,
                {
                    "snippet": {
                        "playlistId": playlist_ref,
                        "resourceId": {"kind": "youtube#video", "videoId": video_id},
                    }
                },
                params={"part": "snippet"},
            )

    async def create_playlist(
        self,
        credentials: Credentials,
        name: str,
        description: str = "",
        is_private: bool = True,
    ) -> Playlist:
        async with self._http_client() as client:
            payload = await self._post(
                client,
                "/playlists",
                credentials,
                {
                    "snippet": {"title": name, "description": description or ""},
                    "status": {"privacyStatus": "private" if is_private else "public"},
                },
                params={"part": "snippet,status"},
            )
        mapped = self._to_playlist(payload)
        if not mapped:
            raise ProviderDecodeError("YouTube did not return the created playlist")
        return mapped
