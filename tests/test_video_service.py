"""
Tests for the VideoService facade against a call-counting fake upstream.
"""
import unittest
import sys
import os
import asyncio
from collections import Counter
from unittest.mock import patch

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from cache import NO_RESULT, MemoryCache
from models import (ChannelInfo, PlaylistItemsPage, SearchPage, Thumbnail, Thumbnails,
                    Video, VideoResults)
from exceptions import (DataIntegrityError, InvalidInputError, NotFoundError,
                        UpstreamTransportError)
from services import video_service
from services.video_service import VideoService, clamp_page_count, get_instance, reset_instance


def thumbs(tag):
    return {"default": {"url": f"https://i.ytimg.com/{tag}/default.jpg", "width": 120, "height": 90}}


def search_page(ids, next_token="", channel="Alai Music"):
    return SearchPage.model_validate({
        "items": [
            {
                "id": {"kind": "youtube#video", "videoId": vid},
                "snippet": {"title": f"search {vid}", "channelTitle": channel,
                            "channelId": "UCalai", "thumbnails": thumbs(f"s-{vid}")},
            }
            for vid in ids
        ],
        "nextPageToken": next_token,
    })


def video_record(vid, views):
    return Video.model_validate({
        "id": vid,
        "snippet": {"title": f"title {vid}", "publishedAt": "2023-01-01T00:00:00Z",
                    "description": "", "tags": ["x"]},
        "statistics": {"viewCount": views},
    })


def playlist_page(ids, next_token=""):
    return PlaylistItemsPage.model_validate({
        "items": [
            {"id": f"pl-{vid}",
             "snippet": {"title": f"upload {vid}", "thumbnails": thumbs(f"p-{vid}")},
             "contentDetails": {"videoId": vid}}
            for vid in ids
        ],
        "nextPageToken": next_token,
    })


def channel_info(channel_id, uploads="UUalai", video_count="120"):
    item = {"id": channel_id, "snippet": {"title": "Alai"}, "statistics": {"videoCount": video_count}}
    if uploads is not None:
        item["contentDetails"] = {"relatedPlaylists": {"uploads": uploads}}
    return ChannelInfo.model_validate({"items": [item]})


class FakeUpstream:
    """Serves canned pages and counts every request by operation."""

    def __init__(self):
        self.calls = Counter()
        self.requests = []
        self.search_pages = {}     # (query, token) -> SearchPage
        self.videos = {}           # id -> Video
        self.video_page_size = 0   # 0 = one page per batch
        self.channels = {}         # channel id -> ChannelInfo
        self.playlists = {}        # (playlist id, token) -> PlaylistItemsPage
        self.fail_on = None

    def _record(self, op, *args):
        self.calls[op] += 1
        self.requests.append((op,) + args)
        if self.fail_on == op:
            raise UpstreamTransportError(f"{op} failed", upstream_status=500)

    async def search_page(self, query, page_token=""):
        self._record("search.list", query, page_token)
        return self.search_pages[(query, page_token)]

    async def videos_page(self, ids, page_token=""):
        self._record("videos.list", ids, page_token)
        found = [self.videos[i] for i in ids.split(",") if i in self.videos]
        if not self.video_page_size:
            return VideoResults(items=found)
        start = int(page_token or 0)
        end = start + self.video_page_size
        return VideoResults(items=found[start:end], next_page_token=str(end) if end < len(found) else "")

    async def channel_info(self, channel_id):
        self._record("channels.list", channel_id)
        return self.channels.get(channel_id, ChannelInfo())

    async def playlist_items_page(self, playlist_id, page_token=""):
        self._record("playlistItems.list", playlist_id, page_token)
        return self.playlists[(playlist_id, page_token)]

    def get_api_stats(self):
        return {"api_calls_count": sum(self.calls.values())}


class VideoServiceTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.upstream = FakeUpstream()
        self.cache = MemoryCache()
        self.service = VideoService("test-key", self.cache, upstream=self.upstream)


class TestSearchAndRetrieveTags(VideoServiceTestCase):
    """Test cases for keyword search."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.upstream.search_pages[("alai", "")] = search_page(["v1", "v2", "v3"], "p2")
        self.upstream.search_pages[("alai", "p2")] = search_page(["v4", "v5"], "p3")
        for vid, views in zip(["v1", "v2", "v3", "v4", "v5"], ["2000", "500", "3000", "1200", "900"]):
            self.upstream.videos[vid] = video_record(vid, views)

    async def test_end_to_end_filter_and_cache(self):
        results = await self.service.search_and_retrieve_tags("alai", 2)

        self.assertEqual(results.ids, ["v1", "v3", "v4"])
        self.assertEqual(self.upstream.calls["search.list"], 2)
        self.assertEqual(self.upstream.calls["videos.list"], 1)
        self.assertIs(await self.cache.get_video("alai"), results)

        # search snippet data is merged into the lookup results
        first = results.items[0]
        self.assertEqual(first.snippet.channel_title, "Alai Music")
        self.assertEqual(first.snippet.channel_id, "UCalai")
        self.assertEqual(first.snippet.thumbnails.default.url, "https://i.ytimg.com/s-v1/default.jpg")
        self.assertEqual(first.snippet.title, "title v1")

    async def test_cache_key_ignores_page_count(self):
        first = await self.service.search_and_retrieve_tags("alai", 2)
        calls_before = sum(self.upstream.calls.values())

        second = await self.service.search_and_retrieve_tags("alai", 5)

        self.assertIs(second, first)
        self.assertEqual(len(second.items), 3)
        self.assertEqual(sum(self.upstream.calls.values()), calls_before)

    async def test_page_count_is_clamped(self):
        self.upstream.search_pages[("alai", "p3")] = search_page([], "")
        await self.service.search_and_retrieve_tags("alai", 0)
        self.assertEqual(self.upstream.calls["search.list"], 1)

    async def test_default_page_count_is_one(self):
        await self.service.search_and_retrieve_tags("alai")
        self.assertEqual(self.upstream.calls["search.list"], 1)

    async def test_bad_view_count_fails_whole_search(self):
        self.upstream.videos["v2"] = video_record("v2", "")

        with self.assertRaises(DataIntegrityError):
            await self.service.search_and_retrieve_tags("alai", 2)
        self.assertIsNone(await self.cache.get_video("alai"))

    async def test_upstream_error_propagates_and_nothing_is_cached(self):
        self.upstream.fail_on = "videos.list"

        with self.assertRaises(UpstreamTransportError):
            await self.service.search_and_retrieve_tags("alai", 2)
        self.assertIsNone(await self.cache.get_video("alai"))
        self.assertEqual((await self.cache.get_stats())["partitions"]["video_detail"]["size"], 0)

    async def test_non_string_query_rejected(self):
        with self.assertRaises(InvalidInputError):
            await self.service.find_tags(None, 1)

    async def test_concurrent_searches_share_one_service(self):
        self.upstream.search_pages[("other", "")] = search_page(["v3"], "")

        alai, other = await asyncio.gather(
            self.service.search_and_retrieve_tags("alai", 2),
            self.service.search_and_retrieve_tags("other", 1),
        )
        self.assertEqual(alai.ids, ["v1", "v3", "v4"])
        self.assertEqual(other.ids, ["v3"])


class TestClampPageCount(unittest.TestCase):

    def test_bounds(self):
        self.assertEqual(clamp_page_count(None), 1)
        self.assertEqual(clamp_page_count(-4), 1)
        self.assertEqual(clamp_page_count(3), 3)
        self.assertEqual(clamp_page_count(50), 5)

    def test_non_integer(self):
        with self.assertRaises(InvalidInputError):
            clamp_page_count("2")


class TestGetChannelInfo(VideoServiceTestCase):
    """Test cases for channel lookups."""

    async def test_found_and_cached(self):
        self.upstream.channels["UCalai"] = channel_info("UCalai")

        info = await self.service.get_channel_info("UCalai")
        again = await self.service.get_channel_info("UCalai")

        self.assertIs(again, info)
        self.assertEqual(info.items[0].uploads_playlist_id, "UUalai")
        self.assertEqual(self.upstream.calls["channels.list"], 1)

    async def test_zero_items_is_not_found(self):
        with self.assertRaises(NotFoundError):
            await self.service.get_channel_info("UCmissing")
        self.assertIsNone(await self.cache.get_channel("UCmissing"))

    async def test_video_count(self):
        item = channel_info("UCalai", video_count="120").items[0]
        self.assertEqual(self.service.get_video_count(item), 120)

    async def test_video_count_malformed(self):
        item = channel_info("UCalai", video_count="many").items[0]
        with self.assertRaises(DataIntegrityError):
            self.service.get_video_count(item)


class TestGetChannelPlaylist(VideoServiceTestCase):
    """Test cases for channel upload listings."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.item = channel_info("UCalai").items[0]
        first = [f"u{i}" for i in range(50)]
        second = [f"u{i}" for i in range(50, 70)]
        self.upstream.playlists[("UUalai", "")] = playlist_page(first, "next")
        self.upstream.playlists[("UUalai", "next")] = playlist_page(second, "")
        for i in range(70):
            self.upstream.videos[f"u{i}"] = video_record(f"u{i}", str(i))

    async def test_pages_batches_and_merges_thumbnails(self):
        results = await self.service.get_channel_playlist(self.item, 70)

        self.assertEqual(self.upstream.calls["playlistItems.list"], 2)
        self.assertEqual(self.upstream.calls["videos.list"], 2)
        # no view filter for uploads
        self.assertEqual(len(results.items), 70)
        self.assertEqual(results.items[0].snippet.thumbnails.default.url, "https://i.ytimg.com/p-u0/default.jpg")
        # playlist data carries no channel fields; lookup values stay
        self.assertEqual(results.items[0].snippet.title, "title u0")
        self.assertIs(await self.cache.get_playlist("UUalai-70"), results)

    async def test_page_count_follows_desired_count(self):
        await self.service.get_channel_playlist(self.item, 10)
        self.assertEqual(self.upstream.calls["playlistItems.list"], 1)

    async def test_cached_by_playlist_and_count(self):
        await self.service.get_channel_playlist(self.item, 10)
        await self.service.get_channel_playlist(self.item, 10)
        self.assertEqual(self.upstream.calls["playlistItems.list"], 1)

        await self.service.get_channel_playlist(self.item, 20)
        self.assertEqual(self.upstream.calls["playlistItems.list"], 2)

    async def test_missing_uploads_caches_no_result(self):
        item = channel_info("UCempty", uploads=None).items[0]

        with self.assertRaises(NotFoundError):
            await self.service.get_channel_playlist(item, 10)
        self.assertIs(await self.cache.get_playlist("UCempty-10"), NO_RESULT)

        with self.assertRaises(NotFoundError):
            await self.service.get_channel_playlist(item, 10)
        self.assertEqual(sum(self.upstream.calls.values()), 0)

    async def test_zero_count_makes_no_playlist_request(self):
        results = await self.service.get_channel_playlist(self.item, 0)
        self.assertEqual(results.items, [])
        self.assertEqual(self.upstream.calls["playlistItems.list"], 0)

    async def test_negative_count_rejected(self):
        with self.assertRaises(InvalidInputError):
            await self.service.get_channel_playlist(self.item, -1)


class TestGetVideosByIds(VideoServiceTestCase):
    """Test cases for id lookups."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.ids = [f"v{i}" for i in range(120)]
        for vid in self.ids:
            self.upstream.videos[vid] = video_record(vid, "10")

    async def test_batches_of_fifty_in_order(self):
        results = await self.service.get_videos_by_ids(self.ids)

        self.assertEqual(results.ids, self.ids)
        batches = [req[1] for req in self.upstream.requests if req[0] == "videos.list"]
        self.assertEqual([len(b.split(",")) for b in batches], [50, 50, 20])

    async def test_follows_continuation_within_batch(self):
        self.upstream.video_page_size = 30

        results = await self.service.get_videos_by_ids(self.ids[:50])

        self.assertEqual(results.ids, self.ids[:50])
        self.assertEqual(self.upstream.calls["videos.list"], 2)

    async def test_cache_key_is_order_sensitive(self):
        await self.service.get_videos_by_ids(["v1", "v2"])
        await self.service.get_videos_by_ids(["v1", "v2"])
        self.assertEqual(self.upstream.calls["videos.list"], 1)

        await self.service.get_videos_by_ids(["v2", "v1"])
        self.assertEqual(self.upstream.calls["videos.list"], 2)
        self.assertIsNotNone(await self.cache.get_video_detail("v1,v2"))

    async def test_empty_ids_make_no_request(self):
        results = await self.service.get_videos_by_ids([])
        self.assertEqual(results.items, [])
        self.assertEqual(self.upstream.calls["videos.list"], 0)

    async def test_string_input_rejected(self):
        with self.assertRaises(InvalidInputError):
            await self.service.get_videos_by_ids("v1,v2")

    async def test_get_stats(self):
        await self.service.get_videos_by_ids(["v1"])
        stats = await self.service.get_stats()
        self.assertEqual(stats["cache_backend"], "memory-cache")
        self.assertEqual(stats["upstream"]["api_calls_count"], 1)


class TestSharedInstance(unittest.TestCase):
    """Test cases for get_instance()/reset_instance()."""

    def setUp(self):
        reset_instance()

    def tearDown(self):
        reset_instance()

    def test_returns_same_instance(self):
        with patch.object(video_service, "YouTubeAPIClient") as mock_client:
            first = get_instance(api_key="key-1", cache=MemoryCache())
            second = get_instance(api_key="key-2")
        self.assertIs(first, second)
        self.assertEqual(second.api_key, "key-1")
        mock_client.assert_called_once_with("key-1")

    def test_reset_builds_new_instance(self):
        with patch.object(video_service, "YouTubeAPIClient"):
            first = get_instance(api_key="key", cache=MemoryCache())
            reset_instance()
            second = get_instance(api_key="key", cache=MemoryCache())
        self.assertIsNot(first, second)

    def test_plain_constructor_gives_independent_services(self):
        a = VideoService("k", MemoryCache(), upstream=FakeUpstream())
        b = VideoService("k", MemoryCache(), upstream=FakeUpstream())
        self.assertIsNot(a.cache, b.cache)


if __name__ == '__main__':
    unittest.main()
