#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration module for tubecache.

Every key of _CONFIG_DEFAULTS can be overridden by an environment variable
of the same name, except the API key which is read from YOUTUBE_API_KEY.
"""

import os
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

_CONFIG_DEFAULTS: Dict[str, Any] = {
    # API Configuration
    "API_KEY": "",
    "API_KEY_ENV_VAR": "YOUTUBE_API_KEY",

    # YouTube API Settings
    "BATCH_SIZE": 50,  # Max ids accepted by videos.list in one call
    "PLAYLIST_PAGE_SIZE": 50,  # Items per playlistItems.list page
    "SEARCH_MAX_RESULTS": 100,
    "CHANNEL_MAX_RESULTS": 50,
    "SEARCH_ORDER": "date",
    "SEARCH_RELEVANCE_LANGUAGE": "en",
    "API_TIMEOUT_SECONDS": 20.0,  # Timeout for a single API request

    # Search behaviour
    "MIN_VIEWS": 1000,  # Search results must have strictly more views than this
    "DEFAULT_SEARCH_PAGES": 1,
    "MAX_SEARCH_PAGES": 5,

    # Caching
    "CACHE_BACKEND": "memory",  # "memory" or "redis"
    "CACHE_MAX_SIZE": 0,  # Per partition, 0 = unbounded
    "CACHE_TTL_SECONDS": 0,  # 0 = entries never expire
    "REDIS_URL": "redis://localhost:6379/0",
    "REDIS_KEY_PREFIX": "tubecache",

    # Logging
    "LOG_LEVEL": "INFO",
    "LOG_STRUCTURED": True,
    "LOG_FILE": "tubecache.log",
}

_TRUE_VALUES = ("true", "1", "yes", "y", "on")


class Config:
    """Runtime settings, one attribute per key of _CONFIG_DEFAULTS."""

    def __init__(self, load_from_env=True):
        for key, value in _CONFIG_DEFAULTS.items():
            setattr(self, key, value)

        if load_from_env:
            self.load_from_env()

    def load_from_env(self):
        """Apply environment overrides, then clamp values the API cannot accept."""
        self.API_KEY = os.environ.get(self.API_KEY_ENV_VAR, self.API_KEY)

        self._load_number_from_env("BATCH_SIZE")
        self._load_number_from_env("PLAYLIST_PAGE_SIZE")
        self._load_number_from_env("SEARCH_MAX_RESULTS")
        self._load_number_from_env("CHANNEL_MAX_RESULTS")
        self._load_number_from_env("MIN_VIEWS")
        self._load_number_from_env("DEFAULT_SEARCH_PAGES")
        self._load_number_from_env("MAX_SEARCH_PAGES")
        self._load_number_from_env("API_TIMEOUT_SECONDS", float)
        self._load_number_from_env("CACHE_MAX_SIZE")
        self._load_number_from_env("CACHE_TTL_SECONDS", float)
        self._load_bool_from_env("LOG_STRUCTURED")

        for key in ("SEARCH_ORDER", "SEARCH_RELEVANCE_LANGUAGE", "REDIS_URL",
                    "REDIS_KEY_PREFIX", "LOG_LEVEL", "LOG_FILE"):
            env_value = os.environ.get(key)
            if env_value:
                setattr(self, key, env_value)

        backend = os.environ.get("CACHE_BACKEND")
        if backend:
            if backend.lower() in ("memory", "redis"):
                self.CACHE_BACKEND = backend.lower()
            else:
                logger.warning(f"Unknown CACHE_BACKEND '{backend}', keeping '{self.CACHE_BACKEND}'")

        if self.BATCH_SIZE < 1 or self.BATCH_SIZE > 50:
            logger.warning(f"BATCH_SIZE {self.BATCH_SIZE} outside [1, 50], using 50")
            self.BATCH_SIZE = 50

        if not self.API_KEY:
            logger.warning(f"No YouTube API key set; export {self.API_KEY_ENV_VAR} before calling the API.")

    def _load_number_from_env(self, key, cast=int):
        """Override `key` with the environment value converted by `cast`.

        An unparsable value is logged and the current value kept.
        """
        raw = os.environ.get(key)
        if raw is None:
            return False
        try:
            setattr(self, key, cast(raw))
        except ValueError:
            logger.warning(f"Ignoring {key}={raw!r}: not a valid {cast.__name__}")
            return False
        return True

    def _load_bool_from_env(self, key):
        raw = os.environ.get(key)
        if raw is None:
            return False
        setattr(self, key, raw.strip().lower() in _TRUE_VALUES)
        return True


# Shared configuration, read once at import
config = Config(load_from_env=True)
