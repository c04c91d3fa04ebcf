from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[object] | None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle: ...


class _AsyncioTimerHandle:
    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[object] | None = None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler:
    """Delayed callbacks on the running event loop. Coroutine callbacks run as tasks."""

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        handle = _AsyncioTimerHandle()

        def _fire() -> None:
            if handle.cancelled():
                return
            result = callback()
            if inspect.isawaitable(result):
                handle._task = asyncio.ensure_future(result)
                handle._task.add_done_callback(_log_failure)

        handle._handle = loop.call_later(delay, _fire)
        return handle


def _log_failure(task: asyncio.Task[object]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Timer callback failed", exc_info=exc)


class OneShotTimer:
    """At most one pending callback; re-arming replaces the previous one."""

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncioScheduler()
        self._handle: TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, callback: TimerCallback) -> None:
        self.cancel()
        handle: TimerHandle | None = None

        def _run() -> Awaitable[object] | None:
            if self._handle is not handle:
                return None
            self._handle = None
            return callback()

        handle = self._scheduler.call_later(delay, _run)
        self._handle = handle

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True
