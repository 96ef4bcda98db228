"""Next-tick scheduling for chain execution."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Protocol, runtime_checkable

from chainsaw._errors import SchedulerError


@runtime_checkable
class Scheduler(Protocol):
    """
    Anything that can run a callback on a later tick.

    Chains never start synchronously: chain() hands its start-up to the
    scheduler so that every fluent call issued in the same synchronous
    burst is queued before the first one runs.
    """

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> Any: ...


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop or asyncio.get_running_loop()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> asyncio.Handle:
        return self.loop.call_soon(callback, *args)

    def __repr__(self) -> str:
        return f"AsyncioScheduler({self.loop!r})"


class TickScheduler:
    """
    A plain FIFO of pending callbacks, drained explicitly.

    Useful outside of asyncio and in tests, where ticks should happen
    exactly when the caller says so.

    Example:
        ticks = TickScheduler()
        with use_scheduler(ticks):
            chainsaw(build).add(5).add(10)
        ticks.run_until_idle()
    """

    def __init__(self) -> None:
        self._pending: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._pending.append((callback, args))

    def tick(self) -> bool:
        """Run one pending callback. Returns False if there was none."""
        if not self._pending:
            return False
        callback, args = self._pending.popleft()
        callback(*args)
        return True

    def run_until_idle(self) -> int:
        """Run callbacks (including newly scheduled ones) until none remain."""
        count = 0
        while self.tick():
            count += 1
        return count

    def __len__(self) -> int:
        return len(self._pending)

    def __repr__(self) -> str:
        return f"TickScheduler({len(self._pending)} pending)"


_scheduler: ContextVar[Scheduler | None] = ContextVar("scheduler", default=None)


@contextmanager
def use_scheduler(scheduler: Scheduler):
    """
    Context manager selecting the scheduler for chains created in scope.

    Example:
        ticks = TickScheduler()
        with use_scheduler(ticks):
            chain = chainsaw(build)
    """
    token = _scheduler.set(scheduler)
    try:
        yield scheduler
    finally:
        _scheduler.reset(token)


def current_scheduler() -> Scheduler:
    """
    The scheduler new chains should use.

    The scheduler set by use_scheduler() wins; otherwise the running
    asyncio loop is used.
    """
    scheduler = _scheduler.get()
    if scheduler is not None:
        return scheduler
    try:
        return AsyncioScheduler(asyncio.get_running_loop())
    except RuntimeError:
        raise SchedulerError(
            "No scheduler available: run inside an asyncio event loop "
            "or wrap chain creation in use_scheduler(TickScheduler())"
        ) from None
