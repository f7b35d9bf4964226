#!/usr/bin/env python3
"""
Feed control: the entry point a page uses to display a feed.

``request_items`` fetches (or reuses) the feed, projects its items and runs
each one through the caller's setters and item renderer. A broken feed never
breaks the page: the caller just gets no items and ``has_data=False``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from cache import FeedCache
from config import get_logger
from errors import ConfigurationError
from fetcher import FeedFetcher
from formatters import Setter, identity
from models import FilterPredicate
from projector import FeedProjector
from reporting import ErrorReporter
from utils import validate_url

logger = get_logger("control")

# One key for the whole control, so a failing renderer on a popular page is reported once
CONTROL_ERROR_KEY = "feeds.control.last_error"

ItemRenderer = Callable[[Dict[str, Any]], Any]


def render_item(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Default renderer: the item's fields as a plain dict."""
    return dict(fields)


class FeedControl:
    """Display a feed through caller-supplied setters and renderer.

    Example:
        cache = FeedCache()
        control = FeedControl(FeedFetcher(cache))
        items, has_data = await control.request_items("https://example.org/feed.xml", max_items=5)
    """

    def __init__(self, fetcher: FeedFetcher, reporter: Optional[ErrorReporter] = None) -> None:
        self.fetcher = fetcher
        self.cache: FeedCache = fetcher.cache
        self.reporter = reporter or fetcher.failure_policy.reporter

    async def request_items(
        self,
        feed_uri: Optional[str],
        max_items: int = -1,
        refresh_interval: Optional[int] = None,
        item_filter: Optional[FilterPredicate] = None,
        title_setter: Optional[Setter] = None,
        link_setter: Optional[Setter] = None,
        date_setter: Optional[Setter] = None,
        item_renderer: Optional[ItemRenderer] = render_item,
    ) -> Tuple[List[Any], bool]:
        """Return (rendered items, has_data) for a feed.

        Args:
            feed_uri: Absolute http(s) URI of the feed. None or blank renders nothing.
            max_items: Maximum number of items; zero or less means no limit
            refresh_interval: Minutes to cache the feed; defaults to FEED_REFRESH_INTERVAL_MINUTES
            item_filter: Decides which raw items are shown (default: all)
            title_setter, link_setter, date_setter: Turn raw inner markup into rendered values
            item_renderer: Builds one output from {"title", "link", "pub_date"}

        Raises:
            ConfigurationError: if feed_uri is not an absolute http(s) URL or
                item_renderer is None.
        """
        # If there's no feed URI, there's nothing to show
        if feed_uri is None or not str(feed_uri).strip():
            logger.debug("No feed URI configured; nothing to display")
            return [], False

        feed_uri = str(feed_uri).strip()
        if not validate_url(feed_uri):
            raise ConfigurationError(f"Feed URI must be an absolute http(s) URL: {feed_uri!r}")
        if item_renderer is None:
            raise ConfigurationError("An item renderer is required to display feed items")

        result = await self.fetcher.fetch(feed_uri, refresh_interval)
        if not result.ok:
            return [], False

        projector = FeedProjector(item_filter=item_filter)
        title_setter = title_setter or identity
        link_setter = link_setter or identity
        date_setter = date_setter or identity

        try:
            outputs = [
                item_renderer({
                    "title": title_setter(item.title),
                    "link": link_setter(item.link),
                    "pub_date": date_setter(item.pub_date),
                })
                for item in projector.project(result.document, max_items)
            ]
        except Exception as e:
            # Don't let a rendering failure bring down the whole page
            self._report_unexpected(feed_uri, e)
            return [], False

        return outputs, bool(outputs)

    def request_items_sync(self, feed_uri: Optional[str], **kwargs: Any) -> Tuple[List[Any], bool]:
        """Blocking variant of request_items for thread-based workers."""
        return asyncio.run(self.request_items(feed_uri, **kwargs))

    def _report_unexpected(self, feed_uri: str, error: Exception) -> None:
        """Report an unexpected error, at most once per notify interval for the whole control."""
        logger.warning(f"Error displaying feed {feed_uri}: {error!r}")
        now = self.cache.clock()
        previous = self.cache.get_failure(CONTROL_ERROR_KEY)
        if previous is not None and previous.retry_suppressed(now):
            return
        self.cache.put_failure(CONTROL_ERROR_KEY, str(error), self.fetcher.failure_policy.notify_interval_minutes)
        context = self.fetcher.failure_policy.report_context(feed_uri, now)
        self.reporter.report(str(error) or error.__class__.__name__, context, error)
