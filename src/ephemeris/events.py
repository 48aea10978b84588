"""Diagnostic event sink shared by the pipeline components.

Components never log directly; they emit named events with structured
fields through the sink they were given.  The default sink forwards to
``logging``; tests pass a recording sink and assert on the events.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("orrery.events")

# Events that indicate degraded service rather than normal operation
_WARNING_EVENTS = frozenset({
    "cache.disabled",
    "cache.read_failed",
    "cache.write_failed",
    "cache.corrupt_entry",
    "upstream.failed",
    "resolver.retry",
    "resolver.fallback_body",
    "resolver.record_invalid",
})
_ERROR_EVENTS = frozenset({
    "resolver.pipeline_failed",
})


class EventSink:
    """Receives pipeline diagnostics.  Subclass and override ``emit``."""

    def emit(self, event: str, **fields: Any) -> None:
        raise NotImplementedError


class LoggingEventSink(EventSink):
    """Writes every event as one log line on ``logger``."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def emit(self, event: str, **fields: Any) -> None:
        if event in _ERROR_EVENTS:
            level = logging.ERROR
        elif event in _WARNING_EVENTS:
            level = logging.WARNING
        else:
            level = logging.INFO
        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        self._logger.log(level, "%s %s", event, detail)
