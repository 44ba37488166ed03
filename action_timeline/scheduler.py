"""
Schedulers used by timelines to defer work.

A scheduler only has to run a callback later (after N ms) or on the next
tick. Timelines never block: every step hands control back to the scheduler.
"""

import asyncio
import heapq
import itertools
import logging
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    @property
    def now_ms(self) -> float:
        ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        ...

    def yield_to(self, callback: Callable[[], None]) -> None:
        ...


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    @property
    def now_ms(self) -> float:
        return self.loop.time() * 1000

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        self.loop.call_later(max(0.0, delay_ms) / 1000, callback)

    def yield_to(self, callback: Callable[[], None]) -> None:
        self.loop.call_soon(callback)


class FrameScheduler:
    """
    Virtual-clock scheduler driven by the host.

    Call update() regularly (e.g., every frame) with the elapsed time.
    Callbacks run in due-time order, ties in the order they were scheduled.
    Nothing runs outside update() / run_until_idle().
    """

    def __init__(self):
        self._now: float = 0.0
        self._counter = itertools.count()
        self._heap: List[Tuple[float, int, Callable[[], None]]] = []

    @property
    def now_ms(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of callbacks waiting to run."""
        return len(self._heap)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        due = self._now + max(0.0, delay_ms)
        heapq.heappush(self._heap, (due, next(self._counter), callback))

    def yield_to(self, callback: Callable[[], None]) -> None:
        self.call_later(0, callback)

    def update(self, dt_ms: float = 0) -> int:
        """
        Advance the clock by dt_ms, running every callback that falls due.

        Returns:
            Number of callbacks executed
        """
        target = self._now + max(0.0, dt_ms)
        executed = 0
        while self._heap and self._heap[0][0] <= target:
            due, _, callback = heapq.heappop(self._heap)
            self._now = max(self._now, due)
            callback()
            executed += 1
        self._now = target
        return executed

    def run_until_idle(self, max_ms: Optional[float] = None) -> int:
        """
        Run callbacks until none are left, jumping the clock between them.

        Args:
            max_ms: Stop before running anything due later than now + max_ms

        Returns:
            Number of callbacks executed
        """
        limit = None if max_ms is None else self._now + max_ms
        executed = 0
        while self._heap:
            due = self._heap[0][0]
            if limit is not None and due > limit:
                self._now = limit
                break
            executed += self.update(due - self._now)
        return executed
