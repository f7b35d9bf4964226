#!/usr/bin/env python3
"""
Stock filters and field setters for feed items.

Filters take a raw item element and return a bool; setters take the raw
inner markup of one field (or None) and return the value to render.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from time import time
from typing import Any, Callable, Optional, Union
from urllib.parse import urljoin
from xml.sax.saxutils import unescape
import calendar
import xml.etree.ElementTree as ET

import feedparser
import feedparser.datetimes
from bs4 import BeautifulSoup

from config import get_logger
from models import FilterPredicate

logger = get_logger("formatters")

Setter = Callable[[Optional[str]], Any]


def identity(value: Optional[str]) -> Optional[str]:
    return value


# ==================== Dates ====================

def parse_pub_date(value: Optional[str]) -> Optional[int]:
    """Parse an RSS date string into a Unix timestamp, or None if it can't be read."""
    if not value or not value.strip():
        return None
    value = value.strip()
    for parser in (_parse_with_feedparser, _parse_with_email_utils, _parse_with_custom_formats):
        timestamp = parser(value)
        if timestamp is not None:
            return timestamp
    logger.debug(f"Unparseable publish date '{value}'")
    return None


def _parse_with_feedparser(date_str: str) -> Optional[int]:
    try:
        time_struct = feedparser.datetimes._parse_date(date_str)
        if time_struct:
            # feedparser normalizes to UTC
            return int(calendar.timegm(time_struct))
    except (ValueError, TypeError, AttributeError, OverflowError):
        return None
    return None


def _parse_with_email_utils(date_str: str) -> Optional[int]:
    try:
        dt = parsedate_to_datetime(date_str)
        if dt:
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return int(dt.timestamp())
    except (TypeError, ValueError, OverflowError):
        return None
    return None


def _parse_with_custom_formats(date_str: str) -> Optional[int]:
    custom_formats = [
        "%d %b %Y %H:%M:%S %z",
        "%d %b %Y %H:%M:%S",
        "%Y-%m-%d",
    ]
    for fmt in custom_formats:
        try:
            dt = datetime.strptime(date_str, fmt)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return int(dt.timestamp())
        except (ValueError, TypeError):
            continue
    return None


def published_within(max_age: Union[timedelta, int, float], clock: Optional[Callable[[], float]] = None) -> FilterPredicate:
    """Filter accepting items whose pubDate is no older than max_age.

    max_age is a timedelta or a number of days. Items without a readable
    date are rejected.
    """
    if not isinstance(max_age, timedelta):
        max_age = timedelta(days=max_age)
    max_age_seconds = max_age.total_seconds()
    clock = clock or time

    def _check(node: ET.Element) -> bool:
        timestamp = parse_pub_date(node.findtext("pubDate"))
        if timestamp is None:
            return False
        return clock() - timestamp <= max_age_seconds

    return _check


def format_pub_date(fmt: str = "%d %B %Y") -> Setter:
    """Setter rendering a pubDate with strftime; unreadable dates pass through unchanged."""

    def _format(value: Optional[str]) -> Optional[str]:
        timestamp = parse_pub_date(value)
        if timestamp is None:
            return value
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(fmt)

    return _format


# ==================== Titles and links ====================

def strip_markup(value: Optional[str]) -> Optional[str]:
    """Setter reducing inner markup to plain text (entities decoded, tags dropped)."""
    if value is None:
        return None
    return BeautifulSoup(value, "html.parser").get_text().strip()


def absolute_link(base_url: str) -> Setter:
    """Setter resolving relative item links against base_url.

    Non-http(s) results (javascript:, data:) are replaced with '#'.
    """

    def _rewrite(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        link = unescape(value).strip()
        if not link:
            return None
        resolved = urljoin(base_url, link)
        if resolved.startswith(("http://", "https://")) or resolved.startswith("mailto:"):
            return resolved
        return "#"

    return _rewrite
