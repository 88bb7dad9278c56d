#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
tubecache_cli.py
Command line front end for the cached YouTube video service.

    tubecache search "alai" --pages 2
    tubecache channel UC_x5XG1OV2P6uZZ5FSM9Ttw
    tubecache uploads UC_x5XG1OV2P6uZZ5FSM9Ttw --count 120
    tubecache videos dQw4w9WgXcQ 9bZkp7q19f0 --json

Exit codes: 0 on success, 2 when the channel or playlist does not exist,
1 for any other error.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from cache import create_cache
from config import config
from exceptions import AppBaseError, NotFoundError
from logging_config import StructuredLogger, setup_logging
from models import ChannelInfo, VideoResults
from services import __version__
from services.video_service import get_instance

logger = StructuredLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tubecache",
        description="Query the YouTube Data API through a response cache."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--api-key", default=None,
                        help=f"YouTube API key (defaults to ${config.API_KEY_ENV_VAR})")
    parser.add_argument("--cache", choices=["memory", "redis"], default=None,
                        help="Cache backend (defaults to CACHE_BACKEND)")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of a table")
    parser.add_argument("--log-level", default=None, help="Console log level")

    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search videos by keyword, keeping popular ones")
    search.add_argument("query")
    search.add_argument("--pages", type=int, default=None,
                        help=f"Search pages to fetch (1-{config.MAX_SEARCH_PAGES})")

    channel = sub.add_parser("channel", help="Show a channel record")
    channel.add_argument("channel_id")

    uploads = sub.add_parser("uploads", help="List the newest uploads of a channel")
    uploads.add_argument("channel_id")
    uploads.add_argument("--count", type=int, default=config.PLAYLIST_PAGE_SIZE,
                         help="Number of uploads to list")

    videos = sub.add_parser("videos", help="Look up videos by id")
    videos.add_argument("ids", nargs="+")

    return parser


def _video_table(results: VideoResults, title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta", border_style="dim", expand=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", overflow="fold")
    table.add_column("Channel", style="green")
    table.add_column("Views", style="blue", justify="right")
    table.add_column("Published", style="dim")

    for video in results.items:
        snippet = video.snippet
        table.add_row(
            video.id,
            video.title,
            snippet.channel_title if snippet else "",
            video.view_count,
            snippet.published_at if snippet else "",
        )
    return table


def _channel_table(info: ChannelInfo) -> Table:
    table = Table(show_header=True, header_style="bold magenta", border_style="dim")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Uploads playlist", style="green")
    table.add_column("Videos", style="blue", justify="right")
    table.add_column("Subscribers", style="blue", justify="right")

    for item in info.items:
        stats = item.statistics
        table.add_row(
            item.id,
            item.snippet.title if item.snippet else "",
            item.uploads_playlist_id or "-",
            stats.video_count if stats else "",
            stats.subscriber_count if stats and not stats.hidden_subscriber_count else "hidden",
        )
    return table


async def run_command(args: argparse.Namespace, console: Console) -> int:
    """Execute one parsed command against the shared service and print the result."""
    service = get_instance(api_key=args.api_key, cache=None if args.cache is None else create_cache(args.cache))

    if args.command == "search":
        result = await service.search_and_retrieve_tags(args.query, args.pages)
        title = f"Videos for '{args.query}' above {config.MIN_VIEWS} views"
    elif args.command == "channel":
        result = await service.get_channel_info(args.channel_id)
        title = None
    elif args.command == "uploads":
        info = await service.get_channel_info(args.channel_id)
        item = info.items[0]
        count = args.count
        if count <= 0:
            count = service.get_video_count(item)
        result = await service.get_channel_playlist(item, count)
        title = f"Latest {count} upload(s) of {item.snippet.title if item.snippet else item.id}"
    else:
        result = await service.get_videos_by_ids(args.ids)
        title = f"{len(args.ids)} requested video(s)"

    if args.json:
        print(result.model_dump_json(by_alias=True, indent=2))
    elif isinstance(result, ChannelInfo):
        console.print(_channel_table(result))
    else:
        console.print(_video_table(result, title))
        console.print(f"[dim]{len(result.items)} video(s)[/]")

    if logger.logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Service stats: {json.dumps(await service.get_stats(), default=str)}")
    return 0


async def main_cli(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the command and map failures onto exit codes."""
    args = build_parser().parse_args(argv)
    setup_logging(
        log_level_console=args.log_level or config.LOG_LEVEL,
        structured=config.LOG_STRUCTURED,
        log_file=config.LOG_FILE or None,
    )
    console = Console()
    err_console = Console(stderr=True)

    try:
        return await run_command(args, console)
    except NotFoundError as e:
        err_console.print(f"[bold yellow]NOT FOUND:[/] {e.message}")
        return 2
    except AppBaseError as e:
        logger.error(f"Command '{args.command}' failed: {e}", error_code=e.error_code, exc_info=False)
        err_console.print(f"[bold red]ERROR ({e.error_code}):[/] {e.message}")
        return 1


def main() -> None:
    try:
        exit_code = asyncio.run(main_cli())
    except KeyboardInterrupt:
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
