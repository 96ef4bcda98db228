"""
Chainsaw - Deferred Fluent Call Chains with Nesting and Replay

Build objects whose methods can be called in a fluent chain, where every
call is queued and executed later, one at a time. An operation signals it
is finished by calling ``saw.next()``, may spawn a nested chain with
``saw.nest()`` that suspends the current one until it ends, and, while
recording, may move through the queue with ``jump()``, ``down()`` and
``trap()``.

Example:
    from chainsaw import chainsaw

    total = []

    def build(saw):
        @saw.handlers.operation
        def add(n):
            total.append(n)
            saw.next()

        @saw.handlers.operation("do")
        def do_(cb):
            saw.nest(cb, sum(total))

    def check(ch, s):
        if s > 12:
            ch.add(-10)

    chainsaw(build).add(5).add(10).do(check).do(lambda ch, s: print(s))
    # prints 5 once the event loop runs the chain

Chains start on the next scheduler tick: inside a running asyncio loop by
default, or on an explicit ``TickScheduler`` selected with
``use_scheduler()``.
"""

from __future__ import annotations

__version__ = "0.1.0"
__all__ = [
    # Construction
    "chainsaw",
    "light",
    "Saw",
    "Builder",
    # Chain / surface
    "Chain",
    "controller",
    "Surface",
    # Queue records
    "Action",
    "Trap",
    "ActionQueue",
    # Scheduling
    "Scheduler",
    "AsyncioScheduler",
    "TickScheduler",
    "use_scheduler",
    # Tracing
    "TraceHook",
    "use_tracing",
    "PrintHook",
    "LoggingHook",
    "OpenTelemetryHook",
    # Errors
    "ChainsawError",
    "RecordingRequiredError",
    "UnresolvedOperationError",
    "SchedulerError",
]

from chainsaw._actions import Action, ActionQueue, Trap
from chainsaw._chain import Chain, controller
from chainsaw._errors import (
    ChainsawError,
    RecordingRequiredError,
    SchedulerError,
    UnresolvedOperationError,
)
from chainsaw._saw import Builder, Saw
from chainsaw._scheduler import (
    AsyncioScheduler,
    Scheduler,
    TickScheduler,
    current_scheduler,
    use_scheduler,
)
from chainsaw._surface import Surface
from chainsaw._tracing import (
    LoggingHook,
    OpenTelemetryHook,
    PrintHook,
    TraceHook,
    current_hook,
    use_tracing,
)


def chainsaw(builder: Builder) -> Chain:
    """
    Create a recording chain from ``builder``.

    ``builder(saw)`` registers operations on ``saw.handlers`` (or returns a
    replacement surface). It runs again for every nested chain.
    """
    saw = Saw.build(builder, scheduler=current_scheduler(), hook=current_hook())
    saw.record()
    return saw.chain()


def light(builder: Builder) -> Chain:
    """
    Create a chain that does not record.

    Executed actions are dropped from the queue, and trap/down/jump raise
    RecordingRequiredError.
    """
    saw = Saw.build(builder, scheduler=current_scheduler(), hook=current_hook())
    return saw.chain()
