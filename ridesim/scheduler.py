"""
Tick and timeout scheduling.

Everything time-based in the engine (stage delays, animation ticks, the
request overlay) goes through a Scheduler so it can run on the asyncio loop
or on a virtual clock that tests fast-forward.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, List, Optional, Protocol, Tuple

Callback = Callable[[], None]


class Timer:
    """Handle for a scheduled callback. cancel() is idempotent."""

    def __init__(self, callback: Callback, due_ms: float, interval_ms: Optional[float] = None):
        self._callback = callback
        self.due_ms = due_ms
        self.interval_ms = interval_ms
        self.cancelled = False

    @property
    def repeating(self) -> bool:
        return self.interval_ms is not None

    def cancel(self) -> None:
        self.cancelled = True

    def _fire(self) -> None:
        if not self.cancelled:
            self._callback()


class Scheduler(Protocol):
    def now_ms(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callback) -> Timer: ...

    def call_every(self, interval_ms: float, callback: Callback) -> Timer: ...


class _LoopTimer(Timer):
    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callback,
                 due_ms: float, interval_ms: Optional[float] = None):
        super().__init__(callback, due_ms, interval_ms)
        self._loop = loop
        self._first_due_ms = due_ms
        self._runs = 0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._arm()

    def _arm(self) -> None:
        self._handle = self._loop.call_at(self.due_ms / 1000.0, self._run)

    def _run(self) -> None:
        self._handle = None
        self._fire()
        if self.repeating and not self.cancelled:
            # schedule from the first due time so ticks do not drift
            self._runs += 1
            self.due_ms = self._first_due_ms + self._runs * self.interval_ms
            self._arm()

    def cancel(self) -> None:
        super().cancel()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioScheduler:
    """Wall-clock scheduler on an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callback) -> Timer:
        return _LoopTimer(self.loop, callback, self.now_ms() + max(delay_ms, 0.0))

    def call_every(self, interval_ms: float, callback: Callback) -> Timer:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        return _LoopTimer(self.loop, callback, self.now_ms() + interval_ms, interval_ms)


class VirtualScheduler:
    """
    Manually advanced clock. Callbacks run inside advance(), in due-time
    order; callbacks scheduled while advancing run in the same call if they
    fall inside the window.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self._queue: List[Tuple[float, int, Timer]] = []
        self._seq = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def _push(self, timer: Timer) -> Timer:
        heapq.heappush(self._queue, (timer.due_ms, next(self._seq), timer))
        return timer

    def call_later(self, delay_ms: float, callback: Callback) -> Timer:
        return self._push(Timer(callback, self._now + max(delay_ms, 0.0)))

    def call_every(self, interval_ms: float, callback: Callback) -> Timer:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        return self._push(Timer(callback, self._now + interval_ms, interval_ms))

    @property
    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, ms: float) -> None:
        self.advance_to(self._now + ms)

    def advance_to(self, target_ms: float) -> None:
        while self._queue and self._queue[0][0] <= target_ms:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            timer._fire()
            if timer.repeating and not timer.cancelled:
                timer.due_ms = due + timer.interval_ms
                self._push(timer)
        self._now = max(self._now, target_ms)
