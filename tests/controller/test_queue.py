"""Tests for WorkQueue: de-duplication, per-key serialization, delayed adds."""

import threading

from appdelivery.controller.queue import WorkQueue


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


KEY = ("default", "test-assemble")


class TestDedup:
    def test_repeated_adds_collapse(self):
        queue = WorkQueue()
        for _ in range(5):
            queue.add(KEY)
        assert len(queue) == 1
        assert queue.get(timeout=0) == KEY
        assert queue.get(timeout=0) is None

    def test_fifo_across_keys(self):
        queue = WorkQueue()
        queue.add("a")
        queue.add("b")
        assert [queue.get(timeout=0), queue.get(timeout=0)] == ["a", "b"]


class TestSerialization:
    def test_in_flight_key_is_not_handed_out_twice(self):
        queue = WorkQueue()
        queue.add(KEY)
        assert queue.get(timeout=0) == KEY
        queue.add(KEY)
        assert queue.get(timeout=0) is None
        queue.done(KEY)
        assert queue.get(timeout=0) == KEY

    def test_done_without_readd(self):
        queue = WorkQueue()
        queue.add(KEY)
        queue.done(queue.get(timeout=0))
        assert len(queue) == 0


class TestDelayed:
    def test_add_after_waits_for_clock(self):
        clock = FakeClock()
        queue = WorkQueue(clock=clock)
        queue.add_after(KEY, 30.0)
        assert queue.delayed() == 1
        assert queue.get(timeout=0) is None
        clock.advance(30.0)
        assert queue.get(timeout=0) == KEY
        assert queue.delayed() == 0

    def test_earliest_delay_wins(self):
        clock = FakeClock()
        queue = WorkQueue(clock=clock)
        queue.add_after(KEY, 30.0)
        queue.add_after(KEY, 1.0)
        queue.add_after(KEY, 10.0)
        assert queue.delayed() == 1
        clock.advance(1.0)
        assert queue.get(timeout=0) == KEY
        queue.done(KEY)
        clock.advance(60.0)
        # the superseded entries do not fire again
        assert queue.get(timeout=0) is None

    def test_non_positive_delay_adds_now(self):
        queue = WorkQueue()
        queue.add_after(KEY, 0)
        assert queue.get(timeout=0) == KEY


class TestShutdown:
    def test_get_returns_none(self):
        queue = WorkQueue()
        queue.shutdown()
        queue.add(KEY)
        assert queue.shutting_down
        assert queue.get() is None

    def test_wakes_blocked_getter(self):
        queue = WorkQueue()
        got = []
        worker = threading.Thread(target=lambda: got.append(queue.get()))
        worker.start()
        queue.shutdown()
        worker.join(timeout=5)
        assert not worker.is_alive()
        assert got == [None]

    def test_blocked_getter_receives_item(self):
        queue = WorkQueue()
        got = []
        worker = threading.Thread(target=lambda: got.append(queue.get(timeout=5)))
        worker.start()
        queue.add(KEY)
        worker.join(timeout=5)
        assert got == [KEY]
