"""Event sinks shared by concurrently running repository runners."""

from __future__ import annotations

import queue
from typing import Protocol

from .state import SyncEvent


class EventSink(Protocol):
    """Destination for runner events; must accept concurrent writers."""

    def emit(self, event: SyncEvent) -> None: ...


class QueueSink:
    """Forward events into an unbounded queue read by a single consumer.

    Each event is one immutable object put in a single call, so concurrent
    writers can never interleave the fields of two events, and a slow
    consumer never blocks a writer.
    """

    def __init__(self, events: queue.Queue[SyncEvent | None]) -> None:
        self._events = events

    def emit(self, event: SyncEvent) -> None:
        self._events.put(event)
