"""Work queue - per-key de-duplicated, serialized, with delayed re-adds.

WHY
───
Reconciliation is level-triggered: ten change notifications for one
Application while a pass is running mean "look again once", not "run ten
passes". And two passes for the same Application must never run at the
same time, or both would race on the same status and step targets.

ARCHITECTURE
────────────
::

    add(key) ──► dirty? ──yes──► drop (already queued)
                   │no
                   ▼
             processing? ──yes──► mark dirty, re-queued by done(key)
                   │no
                   ▼
                 queue ──► get() ──► processing ──► done(key)

    add_after(key, delay) ──► waiting heap ──(delay elapsed)──► add(key)

Keys are ``(namespace, name)`` tuples in practice but any hashable works.

Example::

    queue = WorkQueue()
    queue.add(("default", "test-assemble"))
    key = queue.get(timeout=1.0)
    try:
        reconcile(*key)
    finally:
        queue.done(key)
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from collections.abc import Callable, Hashable


class WorkQueue:
    """Thread-safe work queue with at most one in-flight item per key."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[Hashable] = deque()
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._waiting: list[tuple[float, int, Hashable]] = []
        self._waiting_at: dict[Hashable, float] = {}
        self._seq = itertools.count()
        self._shutting_down = False

    def _add_locked(self, key: Hashable) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key not in self._processing:
            self._queue.append(key)
            self._cond.notify()

    def add(self, key: Hashable) -> None:
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: Hashable, delay: float) -> None:
        """Add ``key`` once ``delay`` seconds have passed; the earliest pending delay wins."""
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            ready_at = self._clock() + delay
            current = self._waiting_at.get(key)
            if current is not None and current <= ready_at:
                return
            self._waiting_at[key] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._seq), key))
            self._cond.notify()

    def _promote_ready_locked(self) -> float | None:
        """Move due delayed keys to the queue; seconds until the next one, if any."""
        now = self._clock()
        while self._waiting:
            ready_at, _, key = self._waiting[0]
            if ready_at > now:
                return ready_at - now
            heapq.heappop(self._waiting)
            # superseded by an earlier add_after for the same key
            if self._waiting_at.get(key) != ready_at:
                continue
            del self._waiting_at[key]
            self._add_locked(key)
        return None

    def get(self, timeout: float | None = None) -> Hashable | None:
        """Next key to process, or None on shutdown or timeout."""
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                next_ready = self._promote_ready_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._processing.add(key)
                    self._dirty.discard(key)
                    return key
                if self._shutting_down:
                    return None

                wait = next_ready
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: Hashable) -> None:
        """Mark ``key`` processed; re-queue it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def delayed(self) -> int:
        with self._cond:
            return len(self._waiting_at)

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)


__all__ = ["WorkQueue"]
