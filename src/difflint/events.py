"""Event sink — the seam where run counters and metrics hook in."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class EventSink:
    """Receives named events from the core. The default drops them."""

    def emit(self, name: str, **fields: Any) -> None:
        pass


NullEventSink = EventSink


class LoggingEventSink(EventSink):
    def emit(self, name: str, **fields: Any) -> None:
        logger.debug("event %s %s", name, fields)


class CountingEventSink(EventSink):
    """Tallies events by name; handy for run summaries."""

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}

    def emit(self, name: str, **fields: Any) -> None:
        self.counts[name] = self.counts.get(name, 0) + 1
