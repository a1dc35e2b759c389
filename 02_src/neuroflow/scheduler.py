"""Cancellable delayed callbacks for the ``computing -> done`` transition."""

import asyncio
import heapq
from typing import Callable, List, Protocol, Tuple


class CallHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> CallHandle: ...


class ScheduledCall:
    """Handle for a callback queued on a :class:`SimulatedClock`."""

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self._callback = callback
        self._cancelled = False
        self._fired = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._fired)

    def _fire(self) -> None:
        self._fired = True
        self._callback()


class SimulatedClock:
    """Manually advanced clock.

    Callbacks are ordered by ``(due, seq)`` in a min-heap so two calls due at the
    same instant fire in the order they were scheduled. Time only moves when
    :meth:`advance` is called, which keeps sequencer tests deterministic.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._queue: List[Tuple[float, int, ScheduledCall]] = []
        self._seq = 0

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (call.due, self._seq, call))
        self._seq += 1
        return call

    def advance(self, seconds: float) -> int:
        """Move time forward, firing every due callback; returns how many fired."""

        return self.advance_to(self.now + max(seconds, 0.0))

    def advance_to(self, target: float) -> int:
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, call = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if call.cancelled():
                continue
            call._fire()
            fired += 1
        self.now = max(self.now, target)
        return fired

    def run_until_idle(self) -> int:
        fired = 0
        while self._queue:
            fired += self.advance_to(self._queue[0][0])
        return fired

    def pending_count(self) -> int:
        return sum(1 for _, _, call in self._queue if call.pending)

    def __len__(self) -> int:
        return self.pending_count()


class AsyncioScheduler:
    """Schedules on a running asyncio loop; handles are ``asyncio.TimerHandle``."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay, 0.0), callback)
