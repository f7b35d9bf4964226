#!/usr/bin/env python3
"""Common error types shared across modules.

Network and parse errors never leave the fetcher; they are handed to the
failure policy. Configuration errors propagate to the caller.
"""

from typing import Optional


class FeedError(Exception):
    """Base exception for feed-related errors.

    Attributes:
        response_body: Raw response text, when one was received, for diagnostics.
    """

    def __init__(self, message: str, response_body: Optional[str] = None):
        super().__init__(message)
        self.response_body = response_body


class FeedNetworkError(FeedError):
    """Raised when the remote feed cannot be fetched (timeout, connection, non-200)."""

    def __init__(self, message: str, status: Optional[int] = None, response_body: Optional[str] = None):
        super().__init__(message, response_body=response_body)
        self.status = status


class FeedParseError(FeedError):
    """Raised when the response body is not a well-formed feed document."""


class ConfigurationError(ValueError):
    """Raised when a feed control is used without a valid URI or item renderer."""


__all__ = ["FeedError", "FeedNetworkError", "FeedParseError", "ConfigurationError"]
