"""Deferred callbacks for the calendar's click handling.

The selection machine only needs ``call_later(delay, callback)`` returning a
handle with ``cancel()``. ``asyncio`` event loops already provide that; the
:class:`ManualScheduler` below is a virtual clock that is advanced explicitly,
either by tests or by the timestamps a browser attaches to its events.
"""

from __future__ import annotations

import heapq
import itertools
from typing import Callable, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class DeferredCall:
    """A callback due at ``deadline`` on a :class:`ManualScheduler`."""

    __slots__ = ("deadline", "callback", "cancelled")

    def __init__(self, deadline: float, callback: Callable[[], None]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now
        self._queue: list[tuple[float, int, DeferredCall]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> DeferredCall:
        call = DeferredCall(self.now + delay, callback)
        heapq.heappush(self._queue, (call.deadline, next(self._counter), call))
        return call

    def advance(self, seconds: float) -> int:
        return self.advance_to(self.now + seconds)

    def advance_to(self, when: float) -> int:
        """Move the clock forward and run every call that fell due.

        The clock never moves backwards; an earlier ``when`` only flushes
        calls that are already due. Returns the number of callbacks run.
        """

        self.now = max(self.now, when)
        fired = 0
        while self._queue and self._queue[0][0] <= self.now:
            _, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            call.callback()
            fired += 1
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for _, _, call in self._queue if not call.cancelled)
