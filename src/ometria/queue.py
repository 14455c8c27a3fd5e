"""Thread-safe buffer of pending events."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from .events import Event


@dataclass
class EventQueue:
    """
    Ordered buffer shared by producers and the flush worker.

    All mutations happen under one lock held only for the list swap,
    never across delivery. Draining takes exactly what is queued at that
    instant; anything appended afterwards waits for the next cycle.
    """
    _events: deque[Event] = field(default_factory=deque, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def append(self, event: Event) -> None:
        """Add an event to the tail."""
        with self._lock:
            self._events.append(event)

    def drain(self) -> list[Event]:
        """Remove and return every queued event in FIFO order."""
        with self._lock:
            events, self._events = self._events, deque()
        return list(events)

    def prepend(self, events: Iterable[Event]) -> None:
        """Put an undelivered batch back at the head, keeping its order."""
        events = list(events)
        if not events:
            return
        with self._lock:
            self._events.extendleft(reversed(events))

    def clear(self) -> int:
        """Discard everything queued. Returns the number of events dropped."""
        with self._lock:
            dropped = len(self._events)
            self._events = deque()
        return dropped

    def snapshot(self) -> list[Event]:
        """Copy of the queued events, leaving the queue untouched."""
        with self._lock:
            return list(self._events)

    def length(self) -> int:
        """Current count (may be stale as soon as it returns)."""
        with self._lock:
            return len(self._events)

    def __len__(self) -> int:
        return self.length()
