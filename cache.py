#!/usr/bin/env python3
"""
In-memory feed cache.

Holds two independently expiring tables: parsed feed documents and failure
records. Each entry carries its own absolute expiry; expired entries are
treated as absent when read and dropped lazily by cachetools. Each table has
its own lock so the cache can be shared across threads and event loops.
"""

from __future__ import annotations

import re
import threading
from time import time
from typing import Any, Callable, Dict, Optional

from cachetools import TLRUCache

from config import config, get_logger
from models import CachedDocument, FailureRecord, FeedDocument

logger = get_logger("cache")

SECONDS_PER_MINUTE = 60

CONTENT_KEY_PREFIX = "feeds.content."
FAILURE_KEY_PREFIX = "feeds.failure."

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")


def content_key(uri: str) -> str:
    """Cache key for a feed's parsed document.

    Anything non-alphanumeric is stripped, so URIs that differ only in
    punctuation share one entry.
    """
    return CONTENT_KEY_PREFIX + _NON_ALPHANUMERIC.sub("", str(uri))


def failure_key(uri: str) -> str:
    """Cache key for a feed's failure record (the URI as given)."""
    return FAILURE_KEY_PREFIX + str(uri)


def _entry_expiry(_key: Any, value: Any, _now: float) -> float:
    return value.expires_at


class FeedCache:
    """TTL cache for feed documents and failure records.

    Example:
        cache = FeedCache()
        cache.put_document(content_key(uri), document, ttl_minutes=60)
        entry = cache.get_document(content_key(uri))
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None, max_entries: Optional[int] = None):
        """
        Args:
            clock: Returns the current time in seconds; defaults to time.time.
            max_entries: Capacity of each table; defaults to FEED_CACHE_MAX_ENTRIES.
        """
        self.clock = clock or time
        maxsize = max_entries or config.CACHE_MAX_ENTRIES
        self._documents = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=self.clock)
        self._documents_lock = threading.Lock()
        self._failures = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=self.clock)
        self._failures_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    # ==================== Documents ====================

    def get_document(self, key: str) -> Optional[CachedDocument]:
        """Return the cached document for key, or None if absent or expired."""
        with self._documents_lock:
            entry = self._documents.get(key)
            if entry is not None:
                self._hits += 1
            else:
                self._misses += 1
        if entry is not None:
            logger.debug(f"Cache hit: {key}")
        return entry

    def put_document(self, key: str, document: FeedDocument, ttl_minutes: int) -> Optional[CachedDocument]:
        """Store a document for ttl_minutes, replacing any previous entry.

        A ttl of zero or less disables caching for this call: nothing is
        stored, any previous entry is dropped and None is returned.
        """
        if ttl_minutes <= 0:
            with self._documents_lock:
                self._documents.pop(key, None)
            logger.debug(f"Caching disabled for {key} (ttl={ttl_minutes}m)")
            return None

        now = self.clock()
        entry = CachedDocument(
            document=document,
            fetched_at=now,
            expires_at=now + ttl_minutes * SECONDS_PER_MINUTE,
        )
        with self._documents_lock:
            self._documents[key] = entry
        logger.debug(f"Cached {key} for {ttl_minutes}m")
        return entry

    # ==================== Failures ====================

    def get_failure(self, key: str) -> Optional[FailureRecord]:
        """Return the failure record for key, or None once both of its windows have lapsed."""
        with self._failures_lock:
            return self._failures.get(key)

    def put_failure(
        self,
        key: str,
        message: str,
        retry_suppress_minutes: int,
        escalate_suppress_minutes: Optional[int] = None,
        reported: bool = False,
    ) -> FailureRecord:
        """Record a failure.

        Args:
            key: Failure key for the feed
            message: Last error message
            retry_suppress_minutes: Minutes from now during which the feed is not requested
            escalate_suppress_minutes: Minutes from now for a fresh escalation window, or
                None to keep the current window (no window if there is no record)
            reported: Whether the failure has been reported in the current escalation window
        """
        now = self.clock()
        with self._failures_lock:
            if escalate_suppress_minutes is not None:
                escalate_until = now + escalate_suppress_minutes * SECONDS_PER_MINUTE
            else:
                existing = self._failures.get(key)
                escalate_until = existing.escalate_until if existing is not None else now
            record = FailureRecord(
                message=message,
                retry_until=now + retry_suppress_minutes * SECONDS_PER_MINUTE,
                escalate_until=escalate_until,
                reported=reported,
            )
            self._failures[key] = record
        return record

    # ==================== Management ====================

    def get_stats(self) -> Dict[str, Any]:
        """Hit/miss counters and current table sizes."""
        with self._documents_lock:
            self._documents.expire()
            document_count = len(self._documents)
        with self._failures_lock:
            self._failures.expire()
            failure_count = len(self._failures)
        total = self._hits + self._misses
        return {
            "documents": document_count,
            "failures": failure_count,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total > 0 else 0.0,
        }

    def clear(self) -> None:
        with self._documents_lock, self._failures_lock:
            self._documents.clear()
            self._failures.clear()
            self._hits = self._misses = 0
        logger.info("Feed cache cleared")
