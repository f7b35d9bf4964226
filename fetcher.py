#!/usr/bin/env python3
"""
Feed fetcher with cache-first semantics and failure suppression.

A fetch first checks whether the feed is in its "don't retry" window, then the
content cache, and only then goes to the network. Network and parse failures
never reach the caller: they are passed to the FailurePolicy, which keeps a
single failure quiet and reports it when it recurs.
"""

from __future__ import annotations

from asyncio import TimeoutError, get_running_loop
from datetime import datetime, timezone
from typing import Dict, List, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from cache import FeedCache, content_key, failure_key, SECONDS_PER_MINUTE
from config import config, get_logger
from errors import FeedError, FeedNetworkError, FeedParseError
from models import FailureState, FeedDocument, FetchResult
from reporting import ErrorReporter, LogReporter
from telemetry import init_telemetry, trace_span

# Module-specific logger
logger = get_logger("fetcher")
init_telemetry("feed-control-fetcher")

HTTP_OK = 200


class FailurePolicy:
    """Two-strike reporting for feed failures.

    The first failure for a feed opens an escalation window and is only
    logged. The next failure inside that window is reported to the operator
    channel without extending it; later ones in the same window are only
    logged. Every failure closes the feed to network requests for the retry
    window.
    """

    def __init__(
        self,
        cache: FeedCache,
        reporter: Optional[ErrorReporter] = None,
        retry_suppress_minutes: Optional[int] = None,
        escalate_suppress_minutes: Optional[int] = None,
        notify_interval_minutes: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.reporter = reporter or LogReporter()
        self.retry_suppress_minutes = (
            retry_suppress_minutes if retry_suppress_minutes is not None else config.RETRY_SUPPRESS_MINUTES
        )
        self.escalate_suppress_minutes = (
            escalate_suppress_minutes if escalate_suppress_minutes is not None else config.ESCALATE_SUPPRESS_MINUTES
        )
        self.notify_interval_minutes = (
            notify_interval_minutes if notify_interval_minutes is not None else config.NOTIFY_INTERVAL_MINUTES
        )

    def record_failure(self, uri: str, error: BaseException, response_body: Optional[str] = None) -> FailureState:
        """Apply the policy to a failure and return the resulting state."""
        key = failure_key(uri)
        now = self.cache.clock()
        message = str(error) or error.__class__.__name__
        existing = self.cache.get_failure(key)

        if existing is not None and existing.escalation_active(now):
            state = FailureState.ESCALATING
            escalate_minutes = None
            if existing.reported:
                logger.warning(f"Failure for {uri} already reported in this window: {message}")
            else:
                self.reporter.report(message, self.report_context(uri, now, response_body), error)
            reported = True
        else:
            # Intermittent failures are expected; only a repeat is worth a notification
            logger.warning(f"Suppressing first failure for {uri}: {message}")
            state = FailureState.FIRST_FAILURE_SUPPRESSED
            escalate_minutes = self.escalate_suppress_minutes
            reported = False

        self.cache.put_failure(key, message, self.retry_suppress_minutes, escalate_minutes, reported=reported)
        logger.info(f"Not requesting {uri} again for {self.retry_suppress_minutes}m")
        return state

    def report_context(self, uri: str, now: float, response_body: Optional[str] = None) -> Dict[str, str]:
        """Context attached to an operator report."""
        next_notice = datetime.fromtimestamp(now + self.notify_interval_minutes * SECONDS_PER_MINUTE, tz=timezone.utc)
        context = {
            "Feed URI": uri,
            "Next time you'll be notified if this error continues": next_notice.strftime("%H:%M UTC"),
        }
        if response_body:
            context["Response body"] = response_body
        return context


class FeedFetcher:
    """Fetch and cache parsed feed documents.

    Args:
        cache: Shared FeedCache; constructed once by the application
        reporter: Operator channel for escalated failures
        session: Optional aiohttp session owned by the caller. Without one a
                 short-lived session is opened for each network request.
        proxy_url: Optional HTTP proxy; defaults to the proxy in feeds.yaml
    """

    def __init__(
        self,
        cache: FeedCache,
        reporter: Optional[ErrorReporter] = None,
        session: Optional[ClientSession] = None,
        proxy_url: Optional[str] = None,
        failure_policy: Optional[FailurePolicy] = None,
    ) -> None:
        self.cache = cache
        self.session = session
        self.proxy_url = proxy_url if proxy_url is not None else config.PROXY_URL
        self.failure_policy = failure_policy or FailurePolicy(cache, reporter)
        self.timeout = ClientTimeout(total=config.HTTP_TIMEOUT)

    @trace_span(
        "fetch_feed",
        tracer_name="fetcher",
        attr_from_args=lambda self, uri, refresh_interval_minutes=None: {"feed.url": uri},
    )
    async def fetch(self, uri: str, refresh_interval_minutes: Optional[int] = None) -> FetchResult:
        """Return the parsed document for uri, from cache or the network.

        Failures are absorbed: the result has no document and, when the feed
        is inside its retry window, ``suppressed`` is set.
        """
        if refresh_interval_minutes is None:
            refresh_interval_minutes = config.REFRESH_INTERVAL_MINUTES

        # Don't keep requesting the XML if the feed itself is the problem
        failure = self.cache.get_failure(failure_key(uri))
        if failure is not None and failure.retry_suppressed(self.cache.clock()):
            logger.debug(f"Skipping {uri}, failed recently: {failure.message}")
            return FetchResult(suppressed=True, error=failure.message)

        key = content_key(uri)
        cached = self.cache.get_document(key)
        if cached is not None:
            return FetchResult(document=cached.document, from_cache=True)

        try:
            document = await self._download(uri)
        except FeedError as e:
            logger.warning(f"Error fetching feed {uri}: {e}")
            self.failure_policy.record_failure(uri, e, e.response_body)
            return FetchResult(error=str(e))

        self.cache.put_document(key, document, refresh_interval_minutes)
        logger.info(f"Fetched {uri} ({len(document.items())} items, refresh every {refresh_interval_minutes}m)")
        return FetchResult(document=document)

    @trace_span(
        "download_feed",
        tracer_name="fetcher",
        attr_from_args=lambda self, uri: {"http.url": uri},
    )
    async def _download(self, uri: str) -> FeedDocument:
        """GET and parse a feed, raising FeedNetworkError or FeedParseError."""
        if self.session is not None:
            body = await self._get_text(self.session, uri)
        else:
            async with ClientSession(timeout=self.timeout) as session:
                body = await self._get_text(session, uri)
        # Parsing is not async, run in executor
        return await get_running_loop().run_in_executor(None, FeedDocument.parse, body)

    async def _get_text(self, session: ClientSession, uri: str) -> str:
        request_kwargs = {
            'headers': {'User-Agent': config.USER_AGENT},
            'timeout': self.timeout,
        }
        if self.proxy_url:
            request_kwargs['proxy'] = self.proxy_url
        try:
            async with session.get(uri, **request_kwargs) as response:
                if response.status != HTTP_OK:
                    body = await response.text(errors="replace")
                    raise FeedNetworkError(f"HTTP {response.status}", status=response.status, response_body=body)
                return await response.text()
        except TimeoutError as e:
            raise FeedNetworkError(f"Timed out after {config.HTTP_TIMEOUT}s") from e
        except ClientError as e:
            raise FeedNetworkError(f"Network error: {self._format_client_error(e)}") from e
        except UnicodeDecodeError as e:
            raise FeedParseError(f"Undecodable feed body: {e}") from e
        except OSError as e:
            raise FeedNetworkError(f"Network error: {e}") from e

    def _format_client_error(self, error: ClientError) -> str:
        """Describe aiohttp client errors with any available status/errno."""
        parts: List[str] = [error.__class__.__name__]
        status = getattr(error, 'status', None)
        if status is not None:
            parts.append(f"status={status}")
        os_error = getattr(error, 'os_error', None)
        if os_error is not None:
            errno = getattr(os_error, 'errno', None)
            if errno is not None:
                parts.append(f"errno={errno}")
        message = str(error)
        if message:
            parts.append(message)
        return " ".join(parts)
