#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Merging and filtering of video lookup results.

videos.list returns statistics but the search and playlist listings carry the
channel and thumbnail data callers expect, so the two are joined by video id.
"""

import re
from typing import Dict, Iterable, List, Mapping

from exceptions import DataIntegrityError
from logging_config import StructuredLogger
from models import AuxiliaryInfo, Video, VideoSnippet

logger = StructuredLogger(__name__)

# Optional sign, ASCII digits only.
_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_count(value: str, field_name: str = "viewCount", item_id: str = "") -> int:
    """Parse a decimal statistics string, raising DataIntegrityError when malformed."""
    if not isinstance(value, str) or not _INTEGER_PATTERN.fullmatch(value):
        raise DataIntegrityError(
            f"Invalid {field_name} {value!r} for item '{item_id}'"
        )
    return int(value)


def merge_snippet_info(videos: Iterable[Video], aux_index: Mapping[str, AuxiliaryInfo]) -> List[Video]:
    """Overlay auxiliary snippet fields onto each video whose id is in `aux_index`.

    Videos are never modified in place; merged videos are new objects and
    videos missing from the index are returned as they are.
    """
    merged: List[Video] = []
    for video in videos:
        info = aux_index.get(video.id)
        if info is None:
            merged.append(video)
            continue

        update: Dict[str, object] = {}
        if info.channel_title is not None:
            update["channel_title"] = info.channel_title
        if info.channel_id is not None:
            update["channel_id"] = info.channel_id
        if info.thumbnails is not None:
            update["thumbnails"] = info.thumbnails

        if not update:
            merged.append(video)
            continue

        snippet = video.snippet or VideoSnippet()
        merged.append(video.model_copy(update={"snippet": snippet.model_copy(update=update)}))
    return merged


def filter_by_views(videos: Iterable[Video], min_views: int) -> List[Video]:
    """Keep the videos with strictly more than `min_views` views, in order.

    A missing, empty or non-numeric view count aborts the whole call with
    DataIntegrityError rather than skipping that one video.
    """
    kept: List[Video] = []
    total = 0
    for video in videos:
        total += 1
        views = parse_count(video.view_count, "viewCount", video.id)
        if views > min_views:
            kept.append(video)

    logger.debug(f"View filter kept {len(kept)}/{total} video(s) above {min_views} views",
                 kept=len(kept), total=total, min_views=min_views)
    return kept
