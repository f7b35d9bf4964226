#!/usr/bin/env python3
"""
Projection of a parsed feed into FeedItem records.

The projector walks item elements in document order, applies a filter and a
maximum count, and yields items lazily. Field extraction is pluggable so a
consumer can change how title, link or publish date are read without
touching the iteration.
"""

from __future__ import annotations

from typing import Iterator, Optional
from xml.sax.saxutils import escape
import xml.etree.ElementTree as ET

from config import get_logger
from models import FeedDocument, FeedItem, FieldExtractor, FilterPredicate

logger = get_logger("projector")


def inner_xml(element: Optional[ET.Element]) -> Optional[str]:
    """Return the markup inside an element (text and child elements), or None."""
    if element is None:
        return None
    parts = [escape(element.text or "")]
    parts.extend(ET.tostring(child, encoding="unicode") for child in element)
    return "".join(parts)


def child_markup(tag: str) -> FieldExtractor:
    """Extractor returning the inner markup of the first child named tag."""

    def _extract(node: ET.Element) -> Optional[str]:
        return inner_xml(node.find(tag))

    _extract.__name__ = f"child_markup_{tag}"
    return _extract


def accept_all(_node: ET.Element) -> bool:
    return True


extract_title = child_markup("title")
extract_link = child_markup("link")
extract_pub_date = child_markup("pubDate")


class FeedProjector:
    """Filter-and-limit transformation from feed items to FeedItem records.

    Args:
        item_filter: Decides whether an item element is included (default: all)
        title: Extractor for the item title
        link: Extractor for the item link
        pub_date: Extractor for the item publish date
    """

    def __init__(
        self,
        item_filter: Optional[FilterPredicate] = None,
        title: Optional[FieldExtractor] = None,
        link: Optional[FieldExtractor] = None,
        pub_date: Optional[FieldExtractor] = None,
    ) -> None:
        self.item_filter = item_filter or accept_all
        self.title = title or extract_title
        self.link = link or extract_link
        self.pub_date = pub_date or extract_pub_date

    def project(self, document: FeedDocument, max_items: int = -1) -> Iterator[FeedItem]:
        """Yield items that pass the filter, stopping after max_items.

        Items rejected by the filter do not count toward max_items; a
        max_items of zero or less means no limit.
        """
        nodes = document.items()
        if not nodes:
            logger.debug("Feed has no items to project")
            return

        emitted = 0
        for node in nodes:
            if 0 < max_items <= emitted:
                break
            if not self.item_filter(node):
                continue
            yield FeedItem(
                title=self.title(node),
                link=self.link(node),
                pub_date=self.pub_date(node),
            )
            emitted += 1
