import os

# Keep test runs free of tracer setup and exporters
os.environ.setdefault("DISABLE_TELEMETRY", "true")

import pytest

from cache import FeedCache
from fetcher import FeedFetcher
from reporting import ErrorReporter


def rss(*items: str) -> str:
    """Build a minimal RSS 2.0 document around raw <item> markup."""
    return (
        '<?xml version="1.0"?>'
        '<rss version="2.0"><channel><title>Test feed</title>'
        + "".join(items)
        + "</channel></rss>"
    )


def item(title: str, link: str = "http://example.test/a", pub_date: str = "Mon, 06 Jan 2025 10:00:00 GMT") -> str:
    return f"<item><title>{title}</title><link>{link}</link><pubDate>{pub_date}</pubDate></item>"


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> None:
        self.now += seconds + minutes * 60


class FakeResponse:
    def __init__(self, status: int = 200, body: str = ""):
        self.status = status
        self.body = body

    async def text(self, encoding=None, errors="strict"):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; records every GET."""

    def __init__(self, status: int = 200, body: str = "", error: Exception = None):
        self.status = status
        self.body = body
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status, self.body)


class RecordingReporter(ErrorReporter):
    def __init__(self):
        self.reports = []

    def report(self, message, context, error=None):
        self.reports.append((message, dict(context), error))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return FeedCache(clock=clock)


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def session():
    return FakeSession(body=rss(item("First"), item("Second")))


@pytest.fixture
def fetcher(cache, reporter, session):
    return FeedFetcher(cache, reporter=reporter, session=session, proxy_url="")
