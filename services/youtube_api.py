#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
YouTube Data API v3 client for tubecache.

Issues the four upstream requests the service needs (search.list, videos.list,
channels.list, playlistItems.list) and decodes each response into a pydantic
page model. Transport failures surface as UpstreamTransportError, malformed
responses as UpstreamDecodeError. Nothing is retried.
"""

import asyncio
import functools
from typing import Any, Dict, Optional, Type, TypeVar

import httplib2
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError
from googleapiclient.http import build_http
from pydantic import BaseModel, ValidationError

from config import config
from exceptions import APIConfigurationError, UpstreamDecodeError, UpstreamTransportError
from logging_config import StructuredLogger
from models import ChannelInfo, PlaylistItemsPage, SearchPage, VideoResults
from utils import performance_timer

logger = StructuredLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

VIDEO_FIELDS = "items(snippet(title,publishedAt,description,tags),id,statistics),nextPageToken"


class YouTubeAPIClient:
    """Client for the YouTube Data API v3 endpoints used by VideoService.

    Each request is executed in the default thread pool with its own HTTP
    object, so one client can serve many concurrent callers.
    """

    # API quota costs for the endpoints used (estimates)
    API_COST = {
        "search.list": 100,
        "videos.list": 1,
        "channels.list": 1,
        "playlistItems.list": 1,
    }

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the YouTube API client.

        Args:
            api_key: YouTube Data API key. If None, uses config.API_KEY.
            timeout: Seconds allowed per request, defaults to config.API_TIMEOUT_SECONDS.

        Raises:
            APIConfigurationError: If the API key is missing or the client cannot be built.
        """
        self.api_key = api_key if api_key is not None else config.API_KEY
        self.timeout = timeout if timeout is not None else config.API_TIMEOUT_SECONDS

        if not self.api_key:
            logger.critical("YouTube API key is missing.", exc_info=False)
            raise APIConfigurationError("YouTube API Key is not configured.")

        try:
            # Static discovery document shipped with the library, no network needed
            self.youtube: Resource = build(
                "youtube", "v3",
                developerKey=self.api_key,
                cache_discovery=False,
                static_discovery=True
            )
        except Exception as e:
            logger.critical(f"Error building YouTube API resource: {e}", error=str(e))
            raise APIConfigurationError(f"Could not initialize YouTube API service: {e}") from e

        self.api_calls_count = 0
        self.api_quota_used = 0
        logger.debug("YouTube API client initialized.")

    async def _execute_api_call(self, api_request: Any, operation_name: str) -> Dict[str, Any]:
        """Execute one request off the event loop and return the decoded JSON body.

        Raises:
            UpstreamTransportError: On HTTP errors, network errors or timeout.
            UpstreamDecodeError: If the body is not valid JSON.
        """
        loop = asyncio.get_running_loop()
        execute = functools.partial(api_request.execute, http=build_http())

        try:
            with performance_timer(operation_name):
                response = await asyncio.wait_for(
                    loop.run_in_executor(None, execute),
                    timeout=self.timeout
                )
        except HttpError as http_err:
            status_code = getattr(getattr(http_err, "resp", None), "status", None)
            logger.error(f"HTTP error during {operation_name}: {status_code} - {http_err}",
                         operation=operation_name, status=status_code, exc_info=False)
            raise UpstreamTransportError(
                f"YouTube API error in {operation_name} (status {status_code}): {http_err}",
                upstream_status=status_code
            ) from http_err
        except asyncio.TimeoutError as timeout_err:
            logger.error(f"Timeout during {operation_name} after {self.timeout}s",
                         operation=operation_name, timeout=self.timeout, exc_info=False)
            raise UpstreamTransportError(
                f"YouTube API request {operation_name} timed out after {self.timeout}s"
            ) from timeout_err
        except (httplib2.HttpLib2Error, OSError) as net_err:
            logger.error(f"Network error during {operation_name}: {net_err}",
                         operation=operation_name, error=str(net_err))
            raise UpstreamTransportError(
                f"Network error calling YouTube API ({operation_name}): {net_err}"
            ) from net_err
        except ValueError as decode_err:
            # JSON decoding of the body failed inside the client library
            logger.error(f"Malformed JSON from {operation_name}: {decode_err}",
                         operation=operation_name, error=str(decode_err))
            raise UpstreamDecodeError(
                f"Malformed JSON returned by {operation_name}: {decode_err}"
            ) from decode_err

        self.api_calls_count += 1
        self.api_quota_used += self.API_COST.get(operation_name, 1)
        return response

    @staticmethod
    def _decode(payload: Any, model: Type[ModelT], operation_name: str) -> ModelT:
        """Validate a decoded JSON document against the expected page model."""
        if not isinstance(payload, dict):
            raise UpstreamDecodeError(
                f"Unexpected {type(payload).__name__} body returned by {operation_name}"
            )
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Response of {operation_name} does not match {model.__name__}: {e}",
                         operation=operation_name, exc_info=False)
            raise UpstreamDecodeError(
                f"Unexpected response shape from {operation_name}: {e.error_count()} error(s)"
            ) from e

    async def search_page(self, query: str, page_token: str = "") -> SearchPage:
        """Fetch one page of keyword search results (newest first, videos only)."""
        req = self.youtube.search().list(
            part="snippet",
            q=query,
            maxResults=config.SEARCH_MAX_RESULTS,
            type="video",
            order=config.SEARCH_ORDER,
            relevanceLanguage=config.SEARCH_RELEVANCE_LANGUAGE,
            pageToken=page_token or None
        )
        logger.debug(f"search.list q='{query[:50]}' token='{page_token}'", query=query[:50])
        resp = await self._execute_api_call(req, "search.list")
        return self._decode(resp, SearchPage, "search.list")

    async def videos_page(self, ids: str, page_token: str = "") -> VideoResults:
        """Fetch one page of video details for a comma-joined batch of at most 50 ids."""
        req = self.youtube.videos().list(
            part="snippet,statistics",
            id=ids,
            fields=VIDEO_FIELDS,
            pageToken=page_token or None
        )
        logger.debug(f"videos.list for {ids.count(',') + 1 if ids else 0} id(s) token='{page_token}'")
        resp = await self._execute_api_call(req, "videos.list")
        return self._decode(resp, VideoResults, "videos.list")

    async def channel_info(self, channel_id: str) -> ChannelInfo:
        """Fetch snippet, content details and statistics for one channel id."""
        req = self.youtube.channels().list(
            part="snippet,contentDetails,statistics",
            id=channel_id,
            maxResults=config.CHANNEL_MAX_RESULTS
        )
        logger.debug(f"channels.list id='{channel_id}'", channel_id=channel_id)
        resp = await self._execute_api_call(req, "channels.list")
        return self._decode(resp, ChannelInfo, "channels.list")

    async def playlist_items_page(self, playlist_id: str, page_token: str = "") -> PlaylistItemsPage:
        """Fetch one page (up to 50 entries) of a playlist."""
        req = self.youtube.playlistItems().list(
            part="snippet,contentDetails",
            playlistId=playlist_id,
            maxResults=config.PLAYLIST_PAGE_SIZE,
            pageToken=page_token or None
        )
        logger.debug(f"playlistItems.list playlist='{playlist_id}' token='{page_token}'",
                     playlist_id=playlist_id)
        resp = await self._execute_api_call(req, "playlistItems.list")
        return self._decode(resp, PlaylistItemsPage, "playlistItems.list")

    def get_api_stats(self) -> Dict[str, Any]:
        """Returns API usage counters for this client."""
        return {
            "api_calls_count": self.api_calls_count,
            "api_quota_used_estimated": self.api_quota_used,
        }
