#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Response caches for tubecache.

A cache holds four independent partitions:

    video         search results keyed by the raw query
    channel       channel records keyed by channel id
    playlist      channel upload listings keyed by "<playlist id>-<count>"
    video_detail  videos.list lookups keyed by the comma-joined ids

`MemoryCache` keeps everything in process memory; `RedisCache` stores JSON
payloads in a Redis server. Both are safe to share between concurrent callers.
"""

import asyncio
import functools
import math
import threading
import time
import weakref
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Type, Union

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from config import config
from exceptions import CacheBackendError
from logging_config import StructuredLogger
from models import ChannelInfo, VideoResults

logger = StructuredLogger(__name__)


class _NoResultMarker:
    """Marks a key whose lookup is known to have no result."""

    def __repr__(self) -> str:
        return "NO_RESULT"


NO_RESULT = _NoResultMarker()

PlaylistEntry = Union[VideoResults, _NoResultMarker]


class Cache(ABC):
    """Capability interface shared by every cache backend."""

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Short identifier of the backend, for diagnostics only."""

    def get_service_name(self) -> str:
        return self.service_name

    # Search results
    @abstractmethod
    async def get_video(self, key: str) -> Optional[VideoResults]: ...

    @abstractmethod
    async def set_video(self, key: str, video: VideoResults) -> None: ...

    # Channel records
    @abstractmethod
    async def get_channel(self, key: str) -> Optional[ChannelInfo]: ...

    @abstractmethod
    async def set_channel(self, key: str, channel: ChannelInfo) -> None: ...

    # Channel upload listings; may hold NO_RESULT
    @abstractmethod
    async def get_playlist(self, key: str) -> Optional[PlaylistEntry]: ...

    @abstractmethod
    async def set_playlist(self, key: str, playlist: PlaylistEntry) -> None: ...

    # videos.list lookups
    @abstractmethod
    async def get_video_detail(self, key: str) -> Optional[VideoResults]: ...

    @abstractmethod
    async def set_video_detail(self, key: str, detail: VideoResults) -> None: ...

    @abstractmethod
    async def clear(self) -> int:
        """Remove every entry from every partition and return how many were removed."""

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]: ...


# --- In-memory backend ---

class _Partition:
    """One thread-safe key/value partition with optional LRU bound and TTL.

    With maxsize=0 and ttl_seconds=0 it never evicts or expires anything.
    """

    def __init__(self, name: str, maxsize: int = 0, ttl_seconds: float = 0):
        if maxsize < 0:
            raise ValueError("Partition maxsize must not be negative")
        self.name = name
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds if ttl_seconds and ttl_seconds > 0 else None

        self._data: "OrderedDict[str, Any]" = OrderedDict()
        self._expiry: Optional[Dict[str, float]] = {} if self.ttl_seconds is not None else None
        self._lock = threading.Lock()

        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "ttl_expirations": 0,
        }

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._data:
                self._stats["misses"] += 1
                return None

            if self._expiry is not None and time.monotonic() > self._expiry.get(key, float("inf")):
                self._stats["ttl_expirations"] += 1
                self._stats["misses"] += 1
                self._data.pop(key, None)
                self._expiry.pop(key, None)
                return None

            self._data.move_to_end(key)
            self._stats["hits"] += 1
            return self._data[key]

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            if self.maxsize and key not in self._data and len(self._data) >= self.maxsize:
                old_key, _ = self._data.popitem(last=False)
                if self._expiry is not None:
                    self._expiry.pop(old_key, None)
                self._stats["evictions"] += 1

            self._data[key] = value
            self._data.move_to_end(key)
            if self._expiry is not None:
                self._expiry[key] = time.monotonic() + self.ttl_seconds

    def clear(self) -> int:
        with self._lock:
            count = len(self._data)
            self._data.clear()
            if self._expiry is not None:
                self._expiry.clear()
            return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.copy()
            stats["size"] = len(self._data)
            stats["maxsize"] = self.maxsize
            stats["ttl_enabled"] = self.ttl_seconds is not None
            total_lookups = stats["hits"] + stats["misses"]
            stats["hit_ratio"] = (stats["hits"] / total_lookups) if total_lookups > 0 else 0.0
            return stats


class MemoryCache(Cache):
    """Process-local cache; each partition has its own lock."""

    def __init__(self, maxsize: int = 0, ttl_seconds: float = 0):
        """Create the four partitions.

        Args:
            maxsize: Maximum entries per partition, 0 for unbounded.
            ttl_seconds: Entry lifetime in seconds, 0 for no expiry.
        """
        self._videos = _Partition("video", maxsize, ttl_seconds)
        self._channels = _Partition("channel", maxsize, ttl_seconds)
        self._playlists = _Partition("playlist", maxsize, ttl_seconds)
        self._video_details = _Partition("video_detail", maxsize, ttl_seconds)
        logger.debug(f"MemoryCache initialized: maxsize={maxsize}, ttl={ttl_seconds}s")

    @property
    def service_name(self) -> str:
        return "memory-cache"

    @property
    def _partitions(self):
        return (self._videos, self._channels, self._playlists, self._video_details)

    async def get_video(self, key: str) -> Optional[VideoResults]:
        return self._videos.get(key)

    async def set_video(self, key: str, video: VideoResults) -> None:
        self._videos.put(key, video)

    async def get_channel(self, key: str) -> Optional[ChannelInfo]:
        return self._channels.get(key)

    async def set_channel(self, key: str, channel: ChannelInfo) -> None:
        self._channels.put(key, channel)

    async def get_playlist(self, key: str) -> Optional[PlaylistEntry]:
        return self._playlists.get(key)

    async def set_playlist(self, key: str, playlist: PlaylistEntry) -> None:
        self._playlists.put(key, playlist)

    async def get_video_detail(self, key: str) -> Optional[VideoResults]:
        return self._video_details.get(key)

    async def set_video_detail(self, key: str, detail: VideoResults) -> None:
        self._video_details.put(key, detail)

    async def clear(self) -> int:
        count = sum(partition.clear() for partition in self._partitions)
        logger.info(f"Cleared memory cache: {count} entries removed", removed=count)
        return count

    async def get_stats(self) -> Dict[str, Any]:
        return {
            "backend": self.service_name,
            "partitions": {partition.name: partition.stats() for partition in self._partitions},
        }


# --- Redis backend ---

_NO_RESULT_PAYLOAD = "null"


class RedisCache(Cache):
    """Cache stored in Redis as JSON documents under "<prefix>:<partition>:<key>".

    Single-key GET/SET are atomic on the server, which gives the same
    per-partition guarantees as the memory cache.

    asyncio Redis connections belong to the event loop that opened them, so
    each running loop gets its own client from `client_factory`.
    """

    def __init__(self, client_factory: Callable[[], "redis.Redis"], key_prefix: Optional[str] = None,
                 ttl_seconds: float = 0):
        """Create a cache that builds its clients on demand.

        Args:
            client_factory: Returns a new `redis.asyncio.Redis` created with
                decode_responses=True. Called once per event loop.
            key_prefix: Namespace for every key, defaults to config.REDIS_KEY_PREFIX.
            ttl_seconds: Expiry applied to every write, 0 for none. Fractions
                round up to whole seconds.
        """
        self._client_factory = client_factory
        self._clients: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, redis.Redis]" = \
            weakref.WeakKeyDictionary()
        self._lock = threading.Lock()
        self.key_prefix = key_prefix or config.REDIS_KEY_PREFIX
        self.ttl_seconds = math.ceil(ttl_seconds) if ttl_seconds and ttl_seconds > 0 else None
        self._stats = {"hits": 0, "misses": 0, "writes": 0}

    @classmethod
    def from_url(cls, url: Optional[str] = None, **kwargs) -> "RedisCache":
        """Build a RedisCache whose clients connect to `url` (defaults to config.REDIS_URL)."""
        factory = functools.partial(
            redis.from_url,
            url or config.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            health_check_interval=30
        )
        return cls(factory, **kwargs)

    def _client(self) -> "redis.Redis":
        loop = asyncio.get_running_loop()
        with self._lock:
            client = self._clients.get(loop)
            if client is None:
                client = self._client_factory()
                self._clients[loop] = client
                logger.debug(f"Opened Redis client for event loop {id(loop):#x}", clients=len(self._clients))
            return client

    def _count(self, stat: str) -> None:
        with self._lock:
            self._stats[stat] += 1

    @property
    def service_name(self) -> str:
        return "redis-cache"

    def _key(self, partition: str, key: str) -> str:
        return f"{self.key_prefix}:{partition}:{key}"

    async def _get(self, partition: str, key: str, model: Type[BaseModel]) -> Optional[Any]:
        redis_key = self._key(partition, key)
        try:
            raw = await self._client().get(redis_key)
        except RedisError as e:
            logger.error(f"Redis GET failed for {redis_key}: {e}", partition=partition)
            raise CacheBackendError(f"Redis GET failed: {e}") from e

        if raw is None:
            self._count("misses")
            return None
        if raw == _NO_RESULT_PAYLOAD:
            self._count("hits")
            return NO_RESULT

        try:
            value = model.model_validate_json(raw)
        except ValidationError as e:
            # Entry written by an incompatible version; treat it as absent.
            logger.warning(f"Unreadable cache entry at {redis_key}, ignoring it: {e}", partition=partition)
            self._count("misses")
            return None
        self._count("hits")
        return value

    async def _set(self, partition: str, key: str, value: Any) -> None:
        redis_key = self._key(partition, key)
        payload = _NO_RESULT_PAYLOAD if value is NO_RESULT else value.model_dump_json(by_alias=True)
        try:
            await self._client().set(redis_key, payload, ex=self.ttl_seconds)
        except RedisError as e:
            logger.error(f"Redis SET failed for {redis_key}: {e}", partition=partition)
            raise CacheBackendError(f"Redis SET failed: {e}") from e
        self._count("writes")

    async def get_video(self, key: str) -> Optional[VideoResults]:
        return await self._get("video", key, VideoResults)

    async def set_video(self, key: str, video: VideoResults) -> None:
        await self._set("video", key, video)

    async def get_channel(self, key: str) -> Optional[ChannelInfo]:
        return await self._get("channel", key, ChannelInfo)

    async def set_channel(self, key: str, channel: ChannelInfo) -> None:
        await self._set("channel", key, channel)

    async def get_playlist(self, key: str) -> Optional[PlaylistEntry]:
        return await self._get("playlist", key, VideoResults)

    async def set_playlist(self, key: str, playlist: PlaylistEntry) -> None:
        await self._set("playlist", key, playlist)

    async def get_video_detail(self, key: str) -> Optional[VideoResults]:
        return await self._get("video_detail", key, VideoResults)

    async def set_video_detail(self, key: str, detail: VideoResults) -> None:
        await self._set("video_detail", key, detail)

    async def clear(self) -> int:
        count = 0
        try:
            client = self._client()
            async for redis_key in client.scan_iter(match=f"{self.key_prefix}:*"):
                count += await client.delete(redis_key)
        except RedisError as e:
            logger.error(f"Redis clear failed: {e}")
            raise CacheBackendError(f"Redis clear failed: {e}") from e
        logger.info(f"Cleared redis cache: {count} keys removed", removed=count, prefix=self.key_prefix)
        return count

    async def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.copy()
        return {
            "backend": self.service_name,
            "key_prefix": self.key_prefix,
            "ttl_seconds": self.ttl_seconds,
            "clients": len(self._clients),
            **stats,
        }

    async def close(self) -> None:
        """Close the client opened for the running event loop, if any."""
        loop = asyncio.get_running_loop()
        with self._lock:
            client = self._clients.pop(loop, None)
        if client is not None:
            await client.aclose()


def create_cache(backend: Optional[str] = None) -> Cache:
    """Build the cache backend named by `backend` (defaults to config.CACHE_BACKEND)."""
    name = (backend or config.CACHE_BACKEND).lower()
    if name == "memory":
        return MemoryCache(maxsize=config.CACHE_MAX_SIZE, ttl_seconds=config.CACHE_TTL_SECONDS)
    if name == "redis":
        return RedisCache.from_url(config.REDIS_URL, ttl_seconds=config.CACHE_TTL_SECONDS)
    raise CacheBackendError(f"Unknown cache backend '{backend}'")
