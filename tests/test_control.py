import pytest

from control import CONTROL_ERROR_KEY, FeedControl
from errors import ConfigurationError
from fetcher import FeedFetcher
from formatters import strip_markup
from conftest import FakeSession, RecordingReporter, rss, item

URI = "http://example.test/feed.xml"


@pytest.fixture
def control(fetcher):
    return FeedControl(fetcher)


@pytest.mark.asyncio
async def test_request_items_renders_and_caches(control, session):
    items, has_data = await control.request_items(URI, max_items=1, refresh_interval=60)

    assert has_data
    assert items == [{"title": "First", "link": "http://example.test/a", "pub_date": "Mon, 06 Jan 2025 10:00:00 GMT"}]

    items, has_data = await control.request_items(URI, max_items=1, refresh_interval=60)
    assert has_data
    assert len(items) == 1
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_broken_feed_renders_nothing(cache, reporter):
    fetcher = FeedFetcher(cache, reporter=reporter, session=FakeSession(status=500), proxy_url="")
    control = FeedControl(fetcher)

    items, has_data = await control.request_items(URI)

    assert items == []
    assert has_data is False
    assert reporter.reports == []


@pytest.mark.asyncio
@pytest.mark.parametrize("uri", [None, "", "   "])
async def test_missing_uri_is_a_no_op(control, session, uri):
    assert await control.request_items(uri) == ([], False)
    assert session.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("uri", ["feed.xml", "ftp://example.test/feed.xml", "http://", "//example.test/feed.xml"])
async def test_invalid_uri_raises(control, uri):
    with pytest.raises(ConfigurationError):
        await control.request_items(uri)


@pytest.mark.asyncio
@pytest.mark.parametrize("uri", ["http://localhost:8080/rss", "http://intranet/feeds/rss", "HTTPS://example.test/feed.xml"])
async def test_absolute_http_uri_is_accepted(control, session, uri):
    items, has_data = await control.request_items(uri)

    assert has_data
    assert [i["title"] for i in items] == ["First", "Second"]
    assert session.calls[0][0] == uri


@pytest.mark.asyncio
async def test_missing_renderer_raises(control, session):
    with pytest.raises(ConfigurationError):
        await control.request_items(URI, item_renderer=None)
    assert session.calls == []


@pytest.mark.asyncio
async def test_setters_and_renderer_are_applied(cache, reporter):
    body = rss(item("Fish &amp; <b>chips</b>", link="http://example.test/fish"))
    fetcher = FeedFetcher(cache, reporter=reporter, session=FakeSession(body=body), proxy_url="")
    control = FeedControl(fetcher)

    items, has_data = await control.request_items(
        URI,
        title_setter=strip_markup,
        link_setter=str.upper,
        date_setter=lambda value: "today",
        item_renderer=lambda fields: f"{fields['title']} | {fields['link']} | {fields['pub_date']}",
    )

    assert has_data
    assert items == ["Fish & chips | HTTP://EXAMPLE.TEST/FISH | today"]


@pytest.mark.asyncio
async def test_filter_excluding_everything_has_no_data(control):
    items, has_data = await control.request_items(URI, item_filter=lambda node: False)

    assert items == []
    assert has_data is False


@pytest.mark.asyncio
async def test_feed_without_items_has_no_data(cache, reporter):
    session = FakeSession(body='<?xml version="1.0"?><rss version="2.0"><channel/></rss>')
    control = FeedControl(FeedFetcher(cache, reporter=reporter, session=session, proxy_url=""))

    assert await control.request_items(URI) == ([], False)
    assert len(session.calls) == 1
    assert reporter.reports == []


@pytest.mark.asyncio
async def test_rendering_error_is_reported_once_per_interval(control, reporter, clock):
    def broken(value):
        raise RuntimeError("template exploded")

    assert await control.request_items(URI, title_setter=broken) == ([], False)
    assert await control.request_items(URI, title_setter=broken) == ([], False)

    assert len(reporter.reports) == 1
    message, context, error = reporter.reports[0]
    assert message == "template exploded"
    assert isinstance(error, RuntimeError)
    assert context["Feed URI"] == URI
    assert control.cache.get_failure(CONTROL_ERROR_KEY) is not None

    clock.advance(minutes=10)
    await control.request_items(URI, title_setter=broken)
    assert len(reporter.reports) == 2


@pytest.mark.asyncio
async def test_explicit_reporter_receives_rendering_errors(fetcher):
    own = RecordingReporter()
    control = FeedControl(fetcher, reporter=own)

    def broken(fields):
        raise KeyError("missing")

    await control.request_items(URI, item_renderer=broken)

    assert len(own.reports) == 1


def test_request_items_sync(fetcher):
    control = FeedControl(fetcher)

    items, has_data = control.request_items_sync(URI, max_items=2)

    assert has_data
    assert [i["title"] for i in items] == ["First", "Second"]
