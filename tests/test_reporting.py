import logging

import pytest

from reporting import LogReporter, MAX_LOGGED_VALUE
from telemetry import trace_span


def test_log_reporter_logs_context(caplog):
    with caplog.at_level(logging.ERROR, logger="FeedControl.reporter"):
        LogReporter().report("HTTP 500", {"Feed URI": "http://example.test/feed.xml", "Response body": "x" * 2000})

    (record,) = caplog.records
    assert record.levelno == logging.ERROR
    assert "HTTP 500" in record.getMessage()
    assert "Feed URI: http://example.test/feed.xml" in record.getMessage()
    # Long bodies are truncated in the log line
    assert "x" * (MAX_LOGGED_VALUE + 1) not in record.getMessage()


def test_trace_span_passes_through_results_and_errors():
    @trace_span("sample", attr_from_args=lambda value: {"sample.value": value})
    def double(value, extra=0):
        return value * 2 + extra

    assert double(2) == 4
    # Attribute callback signature mismatch must not break the call
    assert double(2, extra=1) == 5

    @trace_span("failing")
    def fail():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        fail()
