#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pydantic models and dataclasses for YouTube Data API pages, cached result
sets and the auxiliary data merged into video lookups.

Field names are snake_case in Python and camelCase on the wire, so the same
models decode API responses and serialize cache entries.
"""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for every API model: camelCase aliases, immutable once built."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


def _numeric_to_str(value):
    """Statistics are decimal strings upstream; accept bare numbers too."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return value


# --- Thumbnails ---

class Thumbnail(ApiModel):
    url: str = ""
    width: int = 0
    height: int = 0


class Thumbnails(ApiModel):
    """The three size variants returned for videos, playlist items and channels."""

    default: Optional[Thumbnail] = None
    medium: Optional[Thumbnail] = None
    high: Optional[Thumbnail] = None


# --- Videos ---

class VideoSnippet(ApiModel):
    channel_id: str = ""
    channel_title: str = ""
    published_at: str = ""
    title: str = ""
    description: str = ""
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default_to_empty(cls, v):
        return v or []


class VideoStatistics(ApiModel):
    view_count: str = ""
    like_count: str = ""
    dislike_count: str = ""
    favorite_count: str = ""
    comment_count: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def coerce_numbers(cls, v):
        return _numeric_to_str(v)


class Video(ApiModel):
    """A video as returned by videos.list, optionally enriched by the merger."""

    id: str = ""
    snippet: Optional[VideoSnippet] = None
    statistics: Optional[VideoStatistics] = None

    @property
    def title(self) -> str:
        return self.snippet.title if self.snippet else ""

    @property
    def view_count(self) -> str:
        return self.statistics.view_count if self.statistics else ""


class VideoResults(ApiModel):
    """An ordered result set plus the upstream continuation token.

    Used both as one decoded videos.list page and as the cached value of the
    search, playlist and video-detail partitions.
    """

    items: List[Video] = Field(default_factory=list)
    next_page_token: str = ""

    @field_validator("items", mode="before")
    @classmethod
    def items_default_to_empty(cls, v):
        return v or []

    @field_validator("next_page_token", mode="before")
    @classmethod
    def token_default_to_empty(cls, v):
        return v or ""

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.items]


# --- Search (search.list) ---

class SearchResultId(ApiModel):
    kind: str = ""
    video_id: str = ""


class SearchSnippet(ApiModel):
    published_at: str = ""
    title: str = ""
    description: str = ""
    channel_title: str = ""
    channel_id: str = ""
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)


class SearchResult(ApiModel):
    id: SearchResultId = Field(default_factory=SearchResultId)
    snippet: SearchSnippet = Field(default_factory=SearchSnippet)


class SearchPage(ApiModel):
    items: List[SearchResult] = Field(default_factory=list)
    next_page_token: str = ""

    @field_validator("items", mode="before")
    @classmethod
    def items_default_to_empty(cls, v):
        return v or []

    @field_validator("next_page_token", mode="before")
    @classmethod
    def token_default_to_empty(cls, v):
        return v or ""


# --- Playlist items (playlistItems.list) ---

class PlaylistItemSnippet(ApiModel):
    published_at: str = ""
    title: str = ""
    description: str = ""
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)
    channel_title: str = ""


class PlaylistItemContentDetails(ApiModel):
    video_id: str = ""
    video_published_at: str = ""


class PlaylistItem(ApiModel):
    id: str = ""
    snippet: PlaylistItemSnippet = Field(default_factory=PlaylistItemSnippet)
    content_details: PlaylistItemContentDetails = Field(default_factory=PlaylistItemContentDetails)


class PageInfo(ApiModel):
    total_results: int = 0
    results_per_page: int = 0


class PlaylistItemsPage(ApiModel):
    items: List[PlaylistItem] = Field(default_factory=list)
    page_info: Optional[PageInfo] = None
    next_page_token: str = ""

    @field_validator("items", mode="before")
    @classmethod
    def items_default_to_empty(cls, v):
        return v or []

    @field_validator("next_page_token", mode="before")
    @classmethod
    def token_default_to_empty(cls, v):
        return v or ""


# --- Channels (channels.list) ---

class Localized(ApiModel):
    title: str = ""
    description: str = ""


class ChannelSnippet(ApiModel):
    published_at: str = ""
    title: str = ""
    description: str = ""
    custom_url: str = ""
    channel_title: str = ""
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)
    localized: Optional[Localized] = None
    country: str = ""


class RelatedPlaylists(ApiModel):
    likes: str = ""
    uploads: str = ""


class ChannelContentDetails(ApiModel):
    related_playlists: Optional[RelatedPlaylists] = None


class ChannelStatistics(ApiModel):
    view_count: str = ""
    subscriber_count: str = ""
    hidden_subscriber_count: bool = False
    video_count: str = ""

    @field_validator("view_count", "subscriber_count", "video_count", mode="before")
    @classmethod
    def coerce_numbers(cls, v):
        return _numeric_to_str(v)


class ChannelItem(ApiModel):
    """One channel resource. `content_details` points at the uploads playlist."""

    id: str = ""
    snippet: Optional[ChannelSnippet] = None
    content_details: Optional[ChannelContentDetails] = None
    statistics: Optional[ChannelStatistics] = None

    @property
    def uploads_playlist_id(self) -> Optional[str]:
        """The uploads playlist id, or None when the related-playlists block is missing."""
        if self.content_details is None or self.content_details.related_playlists is None:
            return None
        return self.content_details.related_playlists.uploads or None


class ChannelInfo(ApiModel):
    items: List[ChannelItem] = Field(default_factory=list)
    next_page_token: str = ""

    @field_validator("items", mode="before")
    @classmethod
    def items_default_to_empty(cls, v):
        return v or []

    @field_validator("next_page_token", mode="before")
    @classmethod
    def token_default_to_empty(cls, v):
        return v or ""


# --- Aggregation ---

@dataclass(frozen=True)
class AuxiliaryInfo:
    """Snippet fields taken from a search or playlist listing for one video id.

    A None field is left untouched on the video it is merged into.
    """

    channel_title: Optional[str] = None
    channel_id: Optional[str] = None
    thumbnails: Optional[Thumbnails] = None
