"""Tests for the event queue."""

import threading

from ometria.events import Event, OmetriaEventType
from ometria.queue import EventQueue


def make_events(n):
    return [Event.create(OmetriaEventType.CUSTOM, {"n": i}) for i in range(n)]


class TestEventQueue:
    def test_append_and_length(self):
        queue = EventQueue()
        for event in make_events(3):
            queue.append(event)

        assert queue.length() == 3
        assert len(queue) == 3

    def test_drain_is_fifo_and_empties(self):
        queue = EventQueue()
        events = make_events(4)
        for event in events:
            queue.append(event)

        assert queue.drain() == events
        assert queue.length() == 0

    def test_drain_empty(self):
        assert EventQueue().drain() == []

    def test_prepend_goes_ahead_of_new_events(self):
        queue = EventQueue()
        failed = make_events(3)
        for event in failed:
            queue.append(event)

        batch = queue.drain()
        later = make_events(2)
        for event in later:
            queue.append(event)
        queue.prepend(batch)

        assert queue.drain() == failed + later

    def test_clear(self):
        queue = EventQueue()
        for event in make_events(5):
            queue.append(event)

        assert queue.clear() == 5
        assert queue.length() == 0

    def test_snapshot_leaves_queue(self):
        queue = EventQueue()
        events = make_events(2)
        for event in events:
            queue.append(event)

        assert queue.snapshot() == events
        assert queue.length() == 2

    def test_concurrent_appends_and_drains(self):
        queue = EventQueue()
        per_thread = 500
        threads_count = 8
        drained = []
        done = threading.Event()

        def produce():
            for event in make_events(per_thread):
                queue.append(event)

        def consume():
            while not done.is_set():
                drained.extend(queue.drain())

        consumer = threading.Thread(target=consume)
        consumer.start()
        producers = [threading.Thread(target=produce) for _ in range(threads_count)]
        for t in producers:
            t.start()
        for t in producers:
            t.join()
        done.set()
        consumer.join()
        drained.extend(queue.drain())

        assert len(drained) == per_thread * threads_count
        assert len({id(e) for e in drained}) == len(drained)
