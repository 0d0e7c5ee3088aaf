"""Canonical playlist/track schemas shared by both providers"""
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

MusicProvider = Literal["spotify", "youtube"]


class PlaylistOut(BaseModel):
    id: str
    name: str
    description: str = ""
    owner: str = ""
    track_count: int = Field(default=0, ge=0)
    image_url: str | None = None
    external_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class TrackOut(BaseModel):
    id: str
    name: str
    artists: list[str] = []
    album: str = ""
    duration_ms: int = Field(default=0, ge=0)
    external_id: str = ""

    model_config = ConfigDict(from_attributes=True)


class PlaylistCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    is_private: bool = True


class TrackAddRequest(BaseModel):
    track_id: str = Field(..., min_length=1)


class MergeRequestIn(BaseModel):
    # Left optional so missing fields reach the merge validator and get named.
    playlist_name: str | None = None
    source_service: str | None = None
    source_playlist: str | None = None
    target_service: str | None = None


class MergeReceiptOut(BaseModel):
    status: str
    message: str
    name: str
    source_provider: MusicProvider
    source_playlist_id: str
    target_provider: MusicProvider
