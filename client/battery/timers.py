#!/usr/bin/env python
# Timer sources for battery resyncs; the manual one drives tests without sleeping
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class TimerHandle:
    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.cancelled = False

    def cancel(self):
        if not self.cancelled:
            self.cancelled = True
            self._cancel()


class Scheduler:
    """Schedules async callbacks once or repeatedly"""

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        raise NotImplementedError

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        raise NotImplementedError


async def _run_callback(callback: Callback):
    try:
        await callback()
    except Exception:
        logger.exception("Scheduled callback failed")


class AsyncioScheduler(Scheduler):
    """Runs callbacks as tasks on the running event loop"""

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        async def run():
            await asyncio.sleep(delay)
            await _run_callback(callback)

        task = asyncio.create_task(run())
        return TimerHandle(task.cancel)

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        async def run():
            while True:
                await asyncio.sleep(interval)
                await _run_callback(callback)

        task = asyncio.create_task(run())
        return TimerHandle(task.cancel)


class _ManualTimer:
    def __init__(self, due: float, callback: Callback, interval: Optional[float]):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.handle = TimerHandle(lambda: None)


class ManualScheduler(Scheduler):
    """
    Virtual clock: nothing fires until advance() moves time forward.

    Timers fire in due order; a timer due at the same instant as another
    fires in the order it was scheduled.
    """

    def __init__(self):
        self.now = 0.0
        self._timers: List[_ManualTimer] = []

    def _add(self, delay: float, callback: Callback, interval: Optional[float]) -> TimerHandle:
        timer = _ManualTimer(self.now + delay, callback, interval)
        self._timers.append(timer)
        return timer.handle

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        return self._add(delay, callback, None)

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        return self._add(interval, callback, interval)

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.handle.cancelled)

    async def advance(self, seconds: float):
        """Move the clock forward, awaiting each callback that becomes due"""
        target = self.now + seconds
        while True:
            self._timers = [t for t in self._timers if not t.handle.cancelled]
            due = [t for t in self._timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            if timer.interval is None:
                self._timers.remove(timer)
            else:
                timer.due += timer.interval
            await _run_callback(timer.callback)
        self.now = target
