#!/usr/bin/env python3
"""
Data model for feed documents, cache entries and projected items.

Everything here is immutable once created: cache entries are replaced
wholesale, never updated in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, NamedTuple, Optional
import xml.etree.ElementTree as ET

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import fromstring as safe_fromstring

from errors import FeedParseError


class FeedDocument:
    """A parsed RSS document.

    Only the ``rss/channel/item`` shape is understood; a document with any
    other root simply has no items.
    """

    def __init__(self, root: ET.Element):
        self.root = root

    @classmethod
    def parse(cls, text: str) -> "FeedDocument":
        """Parse feed XML, raising FeedParseError (with the body attached) on malformed input."""
        try:
            root = safe_fromstring(text)
        except ET.ParseError as e:
            raise FeedParseError(f"Invalid feed XML: {e}", response_body=text) from e
        except DefusedXmlException as e:
            raise FeedParseError(f"Unsafe feed XML rejected: {e!r}", response_body=text) from e
        return cls(root)

    def items(self) -> List[ET.Element]:
        """Return the item elements in document order."""
        if self.root.tag != "rss":
            return []
        return self.root.findall("./channel/item")

    def __repr__(self) -> str:
        return f"<FeedDocument root={self.root.tag!r} items={len(self.items())}>"


@dataclass(frozen=True)
class CachedDocument:
    document: FeedDocument
    fetched_at: float
    expires_at: float


@dataclass(frozen=True)
class FailureRecord:
    """Last failure for a feed plus its two suppression windows.

    ``retry_until`` stops network requests; ``escalate_until`` is the window in
    which a recurring failure is reported rather than suppressed. ``reported``
    is set once that report has gone out.
    """

    message: str
    retry_until: float
    escalate_until: float
    reported: bool = False

    def retry_suppressed(self, now: float) -> bool:
        return now < self.retry_until

    def escalation_active(self, now: float) -> bool:
        return now < self.escalate_until

    @property
    def expires_at(self) -> float:
        return max(self.retry_until, self.escalate_until)


class FailureState(Enum):
    CLEAN = "clean"
    FIRST_FAILURE_SUPPRESSED = "first_failure_suppressed"
    ESCALATING = "escalating"


@dataclass(frozen=True)
class FeedItem:
    """A projected feed item. Fields hold raw inner markup, or None when missing."""

    title: Optional[str]
    link: Optional[str]
    pub_date: Optional[str]


class FetchResult(NamedTuple):
    document: Optional[FeedDocument] = None
    from_cache: bool = False
    suppressed: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.document is not None


# Decides whether a raw item element is part of the output
FilterPredicate = Callable[[ET.Element], bool]

# Pulls one field out of a raw item element
FieldExtractor = Callable[[ET.Element], Optional[str]]
