#!/usr/bin/env python3
"""
Operator-visible error reporting.

Reporters receive errors that have already passed the suppression policy, so
every call is meant to be seen by a person.
"""

from __future__ import annotations

from typing import Dict, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from config import get_logger
from utils import truncate_string

logger = get_logger("reporter")

# Response bodies can be whole documents; keep log lines readable
MAX_LOGGED_VALUE = 500


class ErrorReporter:
    """Interface for the operator channel."""

    def report(self, message: str, context: Dict[str, str], error: Optional[BaseException] = None) -> None:
        raise NotImplementedError


class LogReporter(ErrorReporter):
    """Publish errors to the unified log and the active trace span."""

    def report(self, message: str, context: Dict[str, str], error: Optional[BaseException] = None) -> None:
        details = "; ".join(f"{k}: {truncate_string(v, MAX_LOGGED_VALUE)}" for k, v in context.items())
        logger.error(f"{message} ({details})")

        span = trace.get_current_span()
        if span.is_recording():
            attributes = {f"feed.error.{_attribute_name(k)}": v for k, v in context.items()}
            if error is not None:
                span.record_exception(error, attributes=attributes)
            else:
                span.add_event("feed.error", attributes={"message": message, **attributes})
            span.set_status(Status(StatusCode.ERROR, message))


def _attribute_name(label: str) -> str:
    return "_".join(label.lower().split())[:40]
