import inspect

from models import FeedDocument, FeedItem
from projector import FeedProjector, child_markup, inner_xml
from conftest import rss, item


def _numbered_feed(count=10):
    return FeedDocument.parse(rss(*(item(f"Item {n}", link=f"http://example.test/{n}") for n in range(1, count + 1))))


def _item_number(node):
    return int(node.findtext("title").split()[1])


def test_filter_applies_before_limit():
    projector = FeedProjector(item_filter=lambda node: _item_number(node) % 2 == 1)

    titles = [i.title for i in projector.project(_numbered_feed(), max_items=3)]

    assert titles == ["Item 1", "Item 3", "Item 5"]


def test_limit_caps_output_in_document_order():
    items = list(FeedProjector().project(_numbered_feed(), max_items=4))

    assert [i.title for i in items] == ["Item 1", "Item 2", "Item 3", "Item 4"]
    assert items[0] == FeedItem(title="Item 1", link="http://example.test/1", pub_date="Mon, 06 Jan 2025 10:00:00 GMT")


def test_non_positive_limit_means_unlimited():
    document = _numbered_feed()

    assert len(list(FeedProjector().project(document, max_items=0))) == 10
    assert len(list(FeedProjector().project(document, max_items=-1))) == 10
    assert len(list(FeedProjector().project(document))) == 10


def test_filter_rejecting_everything_yields_nothing():
    projector = FeedProjector(item_filter=lambda node: False)

    assert list(projector.project(_numbered_feed(), max_items=3)) == []


def test_missing_subnodes_are_none():
    document = FeedDocument.parse(rss("<item><title>Only a title</title></item>"))

    (projected,) = FeedProjector().project(document)

    assert projected == FeedItem(title="Only a title", link=None, pub_date=None)


def test_inner_markup_is_kept():
    document = FeedDocument.parse(rss("<item><title>Fish &amp; <b>chips</b> today</title></item>"))

    (projected,) = FeedProjector().project(document)

    assert projected.title == "Fish &amp; <b>chips</b> today"


def test_empty_element_gives_empty_string():
    assert inner_xml(FeedDocument.parse(rss("<item><title/></item>")).items()[0].find("title")) == ""
    assert inner_xml(None) is None


def test_non_rss_document_has_no_items():
    document = FeedDocument.parse('<feed xmlns="http://www.w3.org/2005/Atom"><entry><title>x</title></entry></feed>')

    assert document.items() == []
    assert list(FeedProjector().project(document)) == []


def test_channel_without_items():
    assert list(FeedProjector().project(FeedDocument.parse(rss()))) == []


def test_custom_extractors():
    document = FeedDocument.parse(
        rss("<item><title>T</title><guid>http://example.test/guid</guid><dc>2025</dc></item>")
    )
    projector = FeedProjector(link=child_markup("guid"), pub_date=lambda node: "fixed")

    (projected,) = projector.project(document)

    assert projected == FeedItem(title="T", link="http://example.test/guid", pub_date="fixed")


def test_projection_is_lazy():
    seen = []

    def record(node):
        seen.append(_item_number(node))
        return True

    items = FeedProjector(item_filter=record).project(_numbered_feed(), max_items=2)
    assert inspect.isgenerator(items)
    assert seen == []

    next(items)
    assert seen == [1]

    list(items)
    # Nothing past the limit is inspected
    assert seen == [1, 2]
