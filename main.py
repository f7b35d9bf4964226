#!/usr/bin/env python3
"""
Command-line front end for the feed control.

Displays one feed (by URI or by slug from feeds.yaml) or every configured
feed, using the same cache, failure suppression and projection a web page
would. ``--repeat`` re-requests the feed to show the cache at work.

Usage:
    python main.py https://example.org/feed.xml --max-items 5
    python main.py news --plain --max-age-days 60
    python main.py --all
"""

import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

from cache import FeedCache, content_key
from config import config, get_logger
from control import FeedControl
from errors import ConfigurationError
from fetcher import FeedFetcher
from formatters import format_pub_date, published_within, strip_markup
from telemetry import init_telemetry, trace_span
from utils import format_timestamp

# Module-specific logger
logger = get_logger("main")
init_telemetry("feed-control-cli")


class FeedConsole:
    """Renders feeds to stdout through a single shared cache."""

    def __init__(self, plain: bool = False, max_age_days: Optional[int] = None) -> None:
        self.cache = FeedCache()
        self.control = FeedControl(FeedFetcher(self.cache))
        self.plain = plain
        self.max_age_days = max_age_days

    def resolve(self, feed: str) -> Dict[str, Any]:
        """Map a slug from feeds.yaml or a bare URI to its display settings."""
        if feed in config.FEED_SOURCES:
            return dict(config.FEED_SOURCES[feed])
        return {"url": feed, "max_items": -1, "refresh_interval_minutes": config.REFRESH_INTERVAL_MINUTES}

    @trace_span("show_feed", tracer_name="cli", attr_from_args=lambda self, feed, max_items=None, repeat=1: {"feed.name": feed})
    async def show(self, feed: str, max_items: Optional[int] = None, repeat: int = 1) -> bool:
        settings = self.resolve(feed)
        kwargs: Dict[str, Any] = {
            "max_items": max_items if max_items is not None else settings["max_items"],
            "refresh_interval": settings["refresh_interval_minutes"],
            "date_setter": format_pub_date("%Y-%m-%d %H:%M"),
        }
        if self.plain:
            kwargs["title_setter"] = strip_markup
        if self.max_age_days:
            kwargs["item_filter"] = published_within(self.max_age_days)

        has_data = False
        for attempt in range(max(repeat, 1)):
            items, has_data = await self.control.request_items(settings["url"], **kwargs)
            logger.info(f"Request {attempt + 1}/{repeat} for {feed}: {len(items)} items")

        if not has_data:
            print(f"{feed}: nothing to display")
            return False

        print(f"{feed} ({settings['url']})")
        for item in items:
            print(f"  {item['pub_date'] or '':16}  {item['title'] or '(untitled)'}")
            if item["link"]:
                print(f"  {'':16}  {item['link']}")
        cached = self.cache.get_document(content_key(settings["url"]))
        if cached is not None:
            print(f"  cached until {format_timestamp(cached.expires_at)}")
        return True

    async def show_all(self, max_items: Optional[int] = None) -> int:
        shown = 0
        for slug in config.FEED_SOURCES:
            try:
                if await self.show(slug, max_items):
                    shown += 1
            except ConfigurationError as e:
                logger.error(f"Skipping feed {slug}: {e}")
        return shown


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Display syndication feeds through the feed cache")
    parser.add_argument("feed", nargs="?", help="Feed URI or slug from feeds.yaml")
    parser.add_argument("--all", action="store_true", help="Display every feed in feeds.yaml")
    parser.add_argument("--max-items", type=int, default=None, help="Maximum items to display (<=0 for all)")
    parser.add_argument("--max-age-days", type=int, default=None, help="Only show items published within N days")
    parser.add_argument("--plain", action="store_true", help="Strip markup from titles")
    parser.add_argument("--repeat", type=int, default=1, help="Request the feed N times (shows cache hits)")
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    console = FeedConsole(plain=args.plain, max_age_days=args.max_age_days)
    logger.debug(f"Configuration: {config.get_config_summary()}")
    if args.all:
        shown = await console.show_all(args.max_items)
        ok = shown > 0
    else:
        ok = await console.show(args.feed, args.max_items, args.repeat)
    logger.info(f"Cache stats: {console.cache.get_stats()}")
    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if not args.all and not args.feed:
        print("Specify a feed URI/slug or --all", file=sys.stderr)
        return 2
    try:
        return asyncio.run(main_async(args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
