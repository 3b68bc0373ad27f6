"""Timers for poll sessions and scripted chat flows.

A scheduler owns at most one pending timer. Starting a new one replaces
the old one, and ``cancel()`` clears whatever is pending. One scheduler
per session; sessions never share one.
"""
from __future__ import annotations

import asyncio
import itertools
from typing import Callable, Optional, Protocol


class Scheduler(Protocol):
    def now(self) -> float: ...

    async def sleep(self, delay: float) -> bool:
        """Wait ``delay`` seconds. False means the wait was cut short by cancel()."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


class AsyncioScheduler:
    """Real-time scheduler on the running event loop."""

    def __init__(self) -> None:
        self._handle: Optional[asyncio.TimerHandle] = None
        self._waiter: Optional[asyncio.Future] = None

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, delay: float) -> bool:
        loop = asyncio.get_running_loop()
        self.cancel()
        waiter = loop.create_future()
        self._waiter = waiter
        self._handle = loop.call_later(max(0.0, delay), _resolve, waiter, True)
        try:
            return await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None
                self._handle = None

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()

        def _fire() -> None:
            self._handle = None
            callback()

        self._handle = loop.call_later(max(0.0, delay), _fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._waiter is not None:
            _resolve(self._waiter, False)
            self._waiter = None


class ManualScheduler:
    """Virtual-time scheduler.

    ``sleep`` returns after one loop iteration and advances the clock by the
    requested delay. ``call_later`` callbacks only run when the test calls
    ``advance`` or ``run_until_idle``.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._pending: Optional[tuple[float, Callable[[], None]]] = None
        self._waiter: Optional[asyncio.Future] = None
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    async def sleep(self, delay: float) -> bool:
        loop = asyncio.get_running_loop()
        self.sleeps.append(delay)
        waiter = loop.create_future()
        self._waiter = waiter
        loop.call_soon(_resolve, waiter, True)
        try:
            elapsed = await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None
        if elapsed:
            self._now += delay
        return elapsed

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self._pending = (self._now + max(0.0, delay), callback)

    def cancel(self) -> None:
        self._pending = None
        if self._waiter is not None:
            _resolve(self._waiter, False)
            self._waiter = None

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every timer that comes due. Returns how many fired."""
        target = self._now + seconds
        fired = 0
        while self._pending is not None and self._pending[0] <= target:
            due, callback = self._pending
            self._pending = None
            self._now = due
            callback()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, limit: int = 1000) -> int:
        fired = 0
        while self._pending is not None:
            if fired >= limit:
                raise RuntimeError("scheduler did not go idle")
            due, callback = self._pending
            self._pending = None
            self._now = max(self._now, due)
            callback()
            fired += 1
        return fired


class SessionToken:
    """Monotonically increasing token; work tagged with a stale token is dropped."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._current = next(self._counter)

    @property
    def current(self) -> int:
        return self._current

    def issue(self) -> int:
        self._current = next(self._counter)
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current

    def invalidate(self) -> None:
        self._current = next(self._counter)


def _resolve(future: asyncio.Future, value: bool) -> None:
    if not future.done():
        future.set_result(value)
