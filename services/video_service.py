#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Cached YouTube video service.

VideoService exposes the four public operations (keyword search with view
filtering, channel info, channel uploads, video lookup by ids). Each one
checks the cache first and, on a miss, pages through the upstream API,
batches id lookups, merges listing metadata into the lookup results and
stores the assembled result before returning it.

Known staleness hazard: search results are cached under the raw query only,
so a later search for the same query with a different page count returns
whatever was cached first.
"""

import functools
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from cache import NO_RESULT, Cache, create_cache
from config import config
from exceptions import DataIntegrityError, InvalidInputError, NotFoundError
from logging_config import StructuredLogger
from models import AuxiliaryInfo, ChannelInfo, ChannelItem, Video, VideoResults
from services.aggregator import filter_by_views, merge_snippet_info, parse_count
from services.youtube_api import YouTubeAPIClient
from utils import batch_ids, calculate_num_pages, paginate

logger = StructuredLogger(__name__)


def clamp_page_count(page_count: Optional[int]) -> int:
    """Clamp a requested search page count into [1, MAX_SEARCH_PAGES]."""
    if page_count is None:
        return config.DEFAULT_SEARCH_PAGES
    if isinstance(page_count, bool) or not isinstance(page_count, int):
        raise InvalidInputError(f"Page count must be an integer, got {page_count!r}")
    return max(1, min(page_count, config.MAX_SEARCH_PAGES))


class VideoService:
    """Facade over the YouTube API with a response cache in front of it.

    Holds no mutable state of its own besides the cache, so one instance can
    be shared by any number of concurrent callers.
    """

    def __init__(self, api_key: str, cache: Cache, upstream: Optional[YouTubeAPIClient] = None):
        """Create a service.

        Args:
            api_key: YouTube Data API key, used to build the default upstream client.
            cache: Cache backend shared by the four operations.
            upstream: Client used for API requests. Built from `api_key` when omitted.
        """
        self._api_key = api_key
        self.cache = cache
        self.upstream = upstream if upstream is not None else YouTubeAPIClient(api_key)
        logger.info(f"cache type: {cache.get_service_name()}", cache_backend=cache.get_service_name())

    @property
    def api_key(self) -> str:
        return self._api_key

    # --- Search ---

    async def search_and_retrieve_tags(self, query: str, page_count: Optional[int] = None) -> VideoResults:
        """Search videos by keyword and return those above the view threshold.

        `page_count` is clamped into [1, 5] and defaults to 1. It is not part
        of the cache key.
        """
        return await self.find_tags(query, clamp_page_count(page_count))

    async def find_tags(self, query: str, num_pages: int, min_views: Optional[int] = None) -> VideoResults:
        """Run a keyword search over at most `num_pages` pages and enrich the hits.

        Args:
            query: Search term, used verbatim as the cache key.
            num_pages: Maximum number of search pages to fetch.
            min_views: View threshold, defaults to config.MIN_VIEWS.

        Returns:
            VideoResults: Videos with statistics, channel info and thumbnails,
            keeping only those with strictly more than `min_views` views.

        Raises:
            DataIntegrityError: If any looked-up video has a malformed view count.
            UpstreamTransportError, UpstreamDecodeError: Propagated from the API client.
        """
        if not isinstance(query, str):
            raise InvalidInputError("Search query must be a string")
        threshold = config.MIN_VIEWS if min_views is None else min_views

        cached = await self.cache.get_video(query)
        if cached is not None:
            logger.debug(f"Search cache hit for '{query[:50]}'", query=query[:50])
            return cached

        aux_index: Dict[str, AuxiliaryInfo] = {}

        async def fetch_search_page(page_token: str) -> Tuple[List[str], str]:
            page = await self.upstream.search_page(query, page_token)
            ids = []
            for result in page.items:
                video_id = result.id.video_id
                if not video_id:
                    continue
                ids.append(video_id)
                aux_index[video_id] = AuxiliaryInfo(
                    channel_title=result.snippet.channel_title,
                    channel_id=result.snippet.channel_id,
                    thumbnails=result.snippet.thumbnails,
                )
            return ids, page.next_page_token

        video_ids = await paginate(fetch_search_page, num_pages, "search.list")
        details = await self.get_videos_by_ids(video_ids)

        merged = merge_snippet_info(details.items, aux_index)
        results = VideoResults(items=filter_by_views(merged, threshold))

        await self.cache.set_video(query, results)
        logger.info(
            f"Search '{query[:50]}' returned {len(results.items)}/{len(video_ids)} video(s) above {threshold} views",
            query=query[:50], pages=num_pages, found=len(video_ids), kept=len(results.items)
        )
        return results

    # --- Channels ---

    async def get_channel_info(self, channel_id: str) -> ChannelInfo:
        """Return the channel record for `channel_id`.

        Raises:
            NotFoundError: If the API returns no channel for the id.
        """
        cached = await self.cache.get_channel(channel_id)
        if cached is not None:
            logger.debug(f"Channel cache hit for {channel_id}", channel_id=channel_id)
            return cached

        info = await self.upstream.channel_info(channel_id)
        if not info.items:
            logger.warning(f"Channel not found via API (ID: {channel_id})", channel_id=channel_id)
            raise NotFoundError(f"Channel info not found for '{channel_id}'")

        await self.cache.set_channel(channel_id, info)
        return info

    def get_video_count(self, item: ChannelItem) -> int:
        """Parse the channel's published video count.

        Raises:
            DataIntegrityError: If the count is missing or not an integer.
        """
        if item.statistics is None:
            raise DataIntegrityError(f"Channel '{item.id}' has no statistics block")
        return parse_count(item.statistics.video_count, "videoCount", item.id)

    async def get_channel_playlist(self, item: ChannelItem, desired_count: int) -> VideoResults:
        """List the newest `desired_count` uploads of a channel, with statistics.

        Fetches ceil(desired_count / 50) playlist pages, looks the videos up and
        copies the playlist thumbnails onto them. No view filter is applied.

        A channel without an uploads playlist is remembered as having no
        result, so repeated calls fail without reaching the API.

        Raises:
            NotFoundError: If the channel has no uploads playlist reference.
        """
        if isinstance(desired_count, bool) or not isinstance(desired_count, int) or desired_count < 0:
            raise InvalidInputError(f"Desired count must be a non-negative integer, got {desired_count!r}")

        uploads_id = item.uploads_playlist_id
        cache_key = f"{uploads_id or item.id}-{desired_count}"

        cached = await self.cache.get_playlist(cache_key)
        if cached is NO_RESULT:
            logger.debug(f"Playlist cache holds no result for {cache_key}", cache_key=cache_key)
            raise NotFoundError(f"No uploads playlist for channel '{item.id}'")
        if cached is not None:
            logger.debug(f"Playlist cache hit for {cache_key}", cache_key=cache_key)
            return cached

        if uploads_id is None:
            await self.cache.set_playlist(cache_key, NO_RESULT)
            logger.warning(f"contentDetails or relatedPlaylists missing for channel '{item.id}'",
                           channel_id=item.id)
            raise NotFoundError(f"No uploads playlist for channel '{item.id}'")

        thumbnails: Dict[str, AuxiliaryInfo] = {}

        async def fetch_playlist_page(page_token: str) -> Tuple[List[str], str]:
            page = await self.upstream.playlist_items_page(uploads_id, page_token)
            ids = []
            for entry in page.items:
                video_id = entry.content_details.video_id
                if not video_id:
                    continue
                ids.append(video_id)
                thumbnails[video_id] = AuxiliaryInfo(thumbnails=entry.snippet.thumbnails)
            return ids, page.next_page_token

        video_ids = await paginate(fetch_playlist_page, calculate_num_pages(desired_count),
                                   "playlistItems.list")
        details = await self.get_videos_by_ids(video_ids)
        results = VideoResults(items=merge_snippet_info(details.items, thumbnails))

        await self.cache.set_playlist(cache_key, results)
        logger.info(f"Fetched {len(results.items)} upload(s) from playlist {uploads_id}",
                    playlist_id=uploads_id, requested=desired_count, returned=len(results.items))
        return results

    # --- Video lookups ---

    async def _fetch_video_page(self, batch: str, page_token: str) -> Tuple[List[Video], str]:
        page = await self.upstream.videos_page(batch, page_token)
        return page.items, page.next_page_token

    async def get_videos_by_ids(self, ids: Iterable[str]) -> VideoResults:
        """Look up video details for `ids`, 50 ids per request.

        Each batch is paged until the API stops returning a continuation
        token. Results keep batch order, then page order.
        """
        if isinstance(ids, str):
            raise InvalidInputError("Video ids must be given as a list, not a string")
        id_list = list(ids)
        cache_key = ",".join(id_list)

        cached = await self.cache.get_video_detail(cache_key)
        if cached is not None:
            logger.debug(f"Video detail cache hit for {len(id_list)} id(s)", id_count=len(id_list))
            return cached

        items: List[Video] = []
        batches = batch_ids(id_list, config.BATCH_SIZE)
        for batch in batches:
            items.extend(await paginate(functools.partial(self._fetch_video_page, batch), None, "videos.list"))

        results = VideoResults(items=items)
        await self.cache.set_video_detail(cache_key, results)
        logger.debug(f"Fetched details for {len(items)} video(s) in {len(batches)} batch(es)",
                     requested=len(id_list), returned=len(items), batches=len(batches))
        return results

    async def get_stats(self) -> Dict[str, Any]:
        """Cache statistics plus upstream call counters when the client tracks them."""
        stats: Dict[str, Any] = {
            "cache_backend": self.cache.get_service_name(),
            "cache": await self.cache.get_stats(),
        }
        api_stats = getattr(self.upstream, "get_api_stats", None)
        if callable(api_stats):
            stats["upstream"] = api_stats()
        return stats


# --- Process-wide instance ---

_instance: Optional[VideoService] = None
_instance_lock = threading.Lock()


def get_instance(api_key: Optional[str] = None, cache: Optional[Cache] = None) -> VideoService:
    """Return the shared VideoService, creating it on the first call.

    Arguments only matter on the call that creates the instance; later calls
    return the existing one unchanged.
    """
    global _instance
    if _instance is None:
        with _instance_lock:
            if _instance is None:
                _instance = VideoService(
                    api_key if api_key is not None else config.API_KEY,
                    cache if cache is not None else create_cache(),
                )
                logger.info("Shared VideoService created")
    return _instance


def reset_instance() -> None:
    """Forget the shared instance so the next get_instance() builds a new one."""
    global _instance
    with _instance_lock:
        _instance = None
