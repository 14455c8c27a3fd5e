"""Event handler: buffers tracked events and flushes them in batches."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence

from .delivery import Delivered, DeliveryOutcome, Rejected, TransportFailure, ValidationResult
from .events import Event, OmetriaEventType
from .queue import EventQueue


logger = logging.getLogger(__name__)


class BatchSender(Protocol):
    """Anything that can deliver a batch (DeliveryClient or a test double)."""

    def submit(self, events: Sequence[Event]) -> DeliveryOutcome: ...

    def validate(self, events: Sequence[Event]) -> ValidationResult: ...


def _done(value: Any = None) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


@dataclass
class EventHandler:
    """
    Accumulates events and flushes them to a BatchSender.

    A flush is triggered when the queue reaches `flush_limit` or when
    `flush_events()` is called. Flushes are single-flight: cycles run one
    at a time on a dedicated worker thread, and a trigger that arrives
    while a cycle is running is folded into a follow-up cycle.

    Outcome handling:
    - Delivered: batch discarded
    - Rejected: batch discarded and reported (never retried)
    - TransportFailure: batch put back at the head of the queue, to go
      out with the next triggered flush
    """
    delivery: BatchSender

    # Queue length that triggers an automatic flush
    flush_limit: int = 20

    # Delay before retrying after a transport failure (0 = wait for the
    # next trigger)
    retry_interval_seconds: float = 0.0

    # Called on the worker thread with (events, outcome) after each cycle
    on_outcome: Callable[[list[Event], DeliveryOutcome], None] | None = None

    queue: EventQueue = field(default_factory=EventQueue)

    # Internal state
    _executor: ThreadPoolExecutor = field(init=False, repr=False)
    _state_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _in_flight: Future | None = field(default=None, init=False, repr=False)
    _dirty: bool = field(default=False, init=False)
    _closed: bool = field(default=False, init=False)
    _retry_timer: threading.Timer | None = field(default=None, init=False, repr=False)
    _requeued: int = field(default=0, init=False, repr=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        if self.flush_limit < 1:
            raise ValueError(f"flush_limit must be positive, got {self.flush_limit}")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ometria-flush")
        self._stats = {
            "events_tracked": 0,
            "flushes": 0,
            "batches_sent": 0,
            "events_sent": 0,
            "rejected": 0,
            "events_rejected": 0,
            "transport_failures": 0,
            "coalesced": 0,
            "cleared": 0,
            "dropped_after_close": 0,
        }

    # -------------------------------------------------------------------------
    # Producer entry points
    # -------------------------------------------------------------------------

    def process_event(
        self,
        kind: OmetriaEventType | str,
        payload: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Record an event stamped with the current time.

        Flushes in the background once the queue reaches the limit.

        Raises:
            ConstructionError: If the payload holds unsupported values
        """
        self.enqueue(Event.create(kind, payload, context))

    def enqueue(self, event: Event) -> None:
        """Append an already-built event and apply the threshold policy."""
        if self._closed:
            self._stats["dropped_after_close"] += 1
            logger.debug(f"Event handler closed, dropping {event.kind} event")
            return

        self.queue.append(event)
        self._stats["events_tracked"] += 1
        logger.debug(f"Event queued: {event.kind} ({event.event_id})")

        if self.queue.length() >= self.flush_limit:
            self._trigger()

    def flush_events(self) -> Future:
        """
        Flush everything queued, regardless of the limit.

        Returns a future with the cycle's outcome (None when there was
        nothing to send).
        """
        return self._trigger()

    def clear_events(self) -> None:
        """Drop every queued event without sending it."""
        dropped = self.queue.clear()
        self._stats["cleared"] += dropped
        logger.debug(f"Cleared {dropped} pending events")

    def validate_pending(self) -> Future:
        """
        Check the queued events against the validation endpoint.

        The queue is left untouched. Returns a future with the
        ValidationResult, or None if nothing is queued.
        """
        events = self.queue.snapshot()
        if not events:
            return _done(None)
        with self._state_lock:
            if self._closed:
                return _done(None)
            return self._executor.submit(self.delivery.validate, events)

    # -------------------------------------------------------------------------
    # Flush cycle
    # -------------------------------------------------------------------------

    def _trigger(self) -> Future:
        with self._state_lock:
            if self._closed:
                logger.warning("Event handler closed, ignoring flush request")
                return _done(None)

            if self._in_flight is not None:
                self._dirty = True
                self._stats["coalesced"] += 1
                logger.debug("Flush already in progress, request coalesced")
                return self._in_flight

            if self.queue.length() == 0:
                return _done(None)

            self._in_flight = self._executor.submit(self._run_cycle)
            return self._in_flight

    def _run_cycle(self) -> DeliveryOutcome | None:
        outcome = None
        try:
            outcome = self._flush_once()
        finally:
            self._finish_cycle(outcome)
        return outcome

    def _flush_once(self) -> DeliveryOutcome | None:
        self._requeued = 0
        events = self.queue.drain()
        if not events:
            return None

        self._stats["flushes"] += 1
        logger.debug(f"Flushing {len(events)} events")

        try:
            outcome = self.delivery.submit(events)
        except Exception as e:
            logger.exception(f"Unexpected error while delivering batch: {e}")
            outcome = TransportFailure(cause=repr(e))

        if isinstance(outcome, Delivered):
            self._stats["batches_sent"] += 1
            self._stats["events_sent"] += len(events)
            logger.info(f"Flushed {len(events)} events")
        elif isinstance(outcome, Rejected):
            self._stats["rejected"] += 1
            self._stats["events_rejected"] += len(events)
            logger.error(
                f"Batch of {len(events)} events rejected ({outcome.status_code}), "
                f"dropping it: {outcome.reason[:500]}"
            )
        else:
            self._stats["transport_failures"] += 1
            self.queue.prepend(events)
            self._requeued = len(events)
            logger.warning(
                f"Flush failed, {len(events)} events re-queued for the next flush: {outcome.cause}"
            )

        if self.on_outcome is not None:
            try:
                self.on_outcome(events, outcome)
            except Exception as e:
                logger.error(f"Outcome callback error: {e}")

        return outcome

    def _finish_cycle(self, outcome: DeliveryOutcome | None) -> None:
        with self._state_lock:
            self._in_flight = None
            dirty, self._dirty = self._dirty, False

            if self._closed:
                return

            if isinstance(outcome, TransportFailure):
                # Only activity during the failed cycle chains another one;
                # the re-queued batch alone waits for the next trigger
                fresh = max(self.queue.length() - self._requeued, 0)
                if dirty or fresh >= self.flush_limit:
                    self._in_flight = self._executor.submit(self._run_cycle)
                elif self.retry_interval_seconds > 0:
                    self._schedule_retry()
                return

            if (dirty and self.queue.length() > 0) or self.queue.length() >= self.flush_limit:
                self._in_flight = self._executor.submit(self._run_cycle)

    def _schedule_retry(self) -> None:
        """Arm the retry timer (caller holds the state lock)."""
        if self._retry_timer is not None:
            self._retry_timer.cancel()
        self._retry_timer = threading.Timer(self.retry_interval_seconds, self.flush_events)
        self._retry_timer.daemon = True
        self._retry_timer.start()
        logger.debug(f"Retry scheduled in {self.retry_interval_seconds}s")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def wait_idle(self, timeout: float | None = None) -> None:
        """Block until no flush cycle is running or scheduled."""
        while True:
            with self._state_lock:
                future = self._in_flight
            if future is None:
                return
            future.result(timeout=timeout)

    def close(self, flush: bool = True) -> None:
        """
        Stop the worker.

        With `flush`, one last cycle sends whatever is still queued.
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            if self._retry_timer is not None:
                self._retry_timer.cancel()
                self._retry_timer = None
            if flush:
                self._executor.submit(self._run_cycle)

        self._executor.shutdown(wait=True)
        logger.info(f"Event handler closed. Stats: {self.stats}")

    @property
    def pending(self) -> int:
        """Events waiting in the queue."""
        return self.queue.length()

    @property
    def stats(self) -> dict:
        """Get handler statistics."""
        return {
            **self._stats,
            "queue_depth": self.pending,
            "flush_in_progress": self._in_flight is not None,
        }
