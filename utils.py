#!/usr/bin/env python3
"""
Utility functions shared by the feed control modules.
"""

from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlsplit


def validate_url(url: str) -> bool:
    """Validate if a string is a properly formatted URL.

    Args:
        url: The URL string to validate

    Returns:
        True if the URL appears to be valid, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    url = url.strip()
    if not url:
        return False

    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ('http', 'https') and bool(parts.netloc)


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate a string to a maximum length, adding a suffix if truncated.

    Args:
        text: The text to potentially truncate
        max_length: Maximum allowed length (including suffix)
        suffix: Suffix to add when truncating

    Returns:
        The original text or truncated version with suffix
    """
    if not text or len(text) <= max_length:
        return text

    if len(suffix) >= max_length:
        return text[:max_length]

    return text[:max_length - len(suffix)] + suffix


def format_timestamp(timestamp: Optional[float]) -> str:
    """Return a human-readable UTC timestamp for diagnostics."""
    if timestamp is None:
        return "n/a"
    try:
        return datetime.fromtimestamp(float(timestamp), tz=timezone.utc).isoformat(timespec="seconds")
    except (OSError, OverflowError, ValueError, TypeError):
        return str(timestamp)
