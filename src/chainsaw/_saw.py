"""The chain controller: execution, nesting and replay."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from chainsaw._actions import ActionQueue, Record, Trap, to_path
from chainsaw._chain import Chain
from chainsaw._errors import RecordingRequiredError
from chainsaw._scheduler import Scheduler, current_scheduler
from chainsaw._surface import Surface
from chainsaw._tracing import TraceHook, invoke_traced

logger = logging.getLogger("chainsaw")

Builder = Callable[["Saw"], "Surface | Mapping[str, Any] | None"]
"""Builder signature: (saw) -> None, or a replacement surface"""

EVENTS = ("begin", "end")


class Saw:
    """
    Controller for one chain instance.

    A Saw owns an action queue, the operation surface the builder filled
    in, and the Chain proxy callers use to queue calls. Operations run one
    at a time; each operation calls ``saw.next()`` when it is done to let
    the following one run.

    Example:
        def build(saw):
            @saw.handlers.operation
            def add(n):
                total.append(n)
                saw.next()

            @saw.handlers.operation
            def do(cb):
                saw.nest(cb, sum(total))

        chainsaw(build).add(5).add(10).do(lambda ch, s: ch.add(-s))

    Once recording (the default for chainsaw(), never for light()), the
    queue is kept after execution and can be replayed with jump(), down()
    and trap().
    """

    def __init__(
        self,
        builder: Builder,
        handlers: Surface | None = None,
        *,
        scheduler: Scheduler | None = None,
        hook: TraceHook | None = None,
        depth: int = 0,
    ):
        self.builder = builder
        self.handlers = handlers if handlers is not None else Surface()
        self.actions = ActionQueue()
        self.scheduler = scheduler
        self.hook = hook
        self.depth = depth
        self.root = Chain(self)
        self._listeners: dict[str, list[Callable[[], Any]]] = {e: [] for e in EVENTS}
        self._started = False
        self._driving = False
        self._advances = 0

    @classmethod
    def build(
        cls,
        builder: Builder,
        *,
        scheduler: Scheduler | None = None,
        hook: TraceHook | None = None,
        depth: int = 0,
    ) -> Saw:
        """Create a Saw and let ``builder`` populate (or replace) its surface."""
        saw = cls(builder, scheduler=scheduler, hook=hook, depth=depth)
        result = builder(saw)
        if result is not None:
            if isinstance(result, Surface):
                saw.handlers = result
            elif isinstance(result, Mapping):
                saw.handlers = Surface.from_mapping(result)
            else:
                raise TypeError(
                    "Builder must return None, a Surface or a mapping, "
                    f"got {type(result).__name__}"
                )
        return saw

    # -------------------------------------------------
    # State
    # -------------------------------------------------

    @property
    def recording(self) -> bool:
        return self.actions.recording

    @property
    def step(self) -> int | None:
        """Replay cursor, or None when not recording."""
        return self.actions.step

    def record(self) -> None:
        """Start recording actions so they can be replayed."""
        self.actions.record()

    # -------------------------------------------------
    # Lifecycle signals
    # -------------------------------------------------

    def on(self, event: str, callback: Callable[[], Any]) -> None:
        self._check_event(event)
        self._listeners[event].append(callback)

    def once(self, event: str, callback: Callable[[], Any]) -> None:
        """Register ``callback`` for the next ``event`` only."""

        def wrapper() -> None:
            self.off(event, wrapper)
            callback()

        self.on(event, wrapper)

    def off(self, event: str, callback: Callable[[], Any]) -> None:
        self._check_event(event)
        try:
            self._listeners[event].remove(callback)
        except ValueError:
            pass

    def emit(self, event: str) -> None:
        self._check_event(event)
        for callback in list(self._listeners[event]):
            callback()

    def wait(self) -> asyncio.Future[Saw]:
        """
        Future resolved the next time this chain ends.

        Must be called from a coroutine running on the event loop.

        Example:
            saw = controller(chainsaw(build).add(5))
            await saw.wait()
        """
        future: asyncio.Future[Saw] = asyncio.get_running_loop().create_future()

        def done() -> None:
            if not future.done():
                future.set_result(self)

        self.once("end", done)
        return future

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}, expected one of {EVENTS}")

    # -------------------------------------------------
    # Execution
    # -------------------------------------------------

    def chain(self) -> Chain:
        """Return the fluent proxy and schedule execution for the next tick."""
        if self.scheduler is None:
            self.scheduler = current_scheduler()
        if not self._started:
            self._started = True
            self.scheduler.call_soon(self._begin)
        return self.root

    def _begin(self) -> None:
        logger.debug("chain begin (depth=%d, %d queued)", self.depth, len(self.actions))
        self.emit("begin")
        self.next()

    def pop(self) -> Record | None:
        """Take the next pending record off the queue (or advance past it)."""
        return self.actions.pop()

    def next(self) -> None:
        """
        Run the next queued operation, or signal "end" if there is none.

        Operations call this when they are finished. Calls made while an
        operation of this chain is still running are queued up and served
        by the loop below, so long chains do not grow the call stack.
        """
        self._advances += 1
        if self._driving:
            return

        self._driving = True
        try:
            while self._advances:
                self._advances -= 1
                self._advance()
        finally:
            self._driving = False
            self._advances = 0

    def _advance(self) -> None:
        record = self.pop()
        while isinstance(record, Trap):
            record = self.pop()

        if record is None:
            logger.debug("chain end (depth=%d)", self.depth)
            self.emit("end")
            return

        fn = self.handlers.resolve(record.path)
        if self.hook is not None:
            invoke_traced(fn, record, self.hook, self.depth)
        else:
            fn(*record.args, **record.kwargs)

    # -------------------------------------------------
    # Nesting
    # -------------------------------------------------

    def nest(self, *args: Any, **kwargs: Any) -> Saw:
        """
        Run ``callback`` against a fresh nested chain.

        Call as ``nest(callback, *args)`` or ``nest(auto_advance, callback,
        *args)``. The callback receives the nested Chain first, then
        ``args``. The nested chain starts on a later tick; unless
        ``auto_advance`` is False this chain resumes (``next()``) when the
        nested one ends. Returns the nested Saw.
        """
        auto_advance = True
        if args and isinstance(args[0], bool):
            auto_advance, args = args[0], args[1:]
        if not args or not callable(args[0]):
            raise TypeError(
                "nest() expects a callback, optionally preceded by a boolean"
            )
        callback, args = args[0], args[1:]

        if self.scheduler is None:
            self.scheduler = current_scheduler()
        child = Saw.build(
            self.builder,
            scheduler=self.scheduler,
            hook=self.hook,
            depth=self.depth + 1,
        )
        if self.recording:
            child.record()

        logger.debug(
            "nest depth=%d auto_advance=%s callback=%s",
            child.depth,
            auto_advance,
            getattr(callback, "__name__", callback),
        )
        callback(child.chain(), *args, **kwargs)
        if auto_advance:
            child.on("end", self.next)
        return child

    # -------------------------------------------------
    # Replay (recording only)
    # -------------------------------------------------

    def _require_recording(self, method: str) -> int:
        step = self.actions.step
        if step is None:
            raise RecordingRequiredError(method)
        return step

    def trap(self, name: str | Sequence[str], callback: Callable[[], Any]) -> None:
        """Register ``callback`` to fire when down() reaches ``name``."""
        step = self._require_recording("trap")
        path = to_path(name)
        self.actions.append(Trap(path, step, callback))
        logger.debug("trap %s registered at step %d", ".".join(path), step)

    def down(self, name: str | Sequence[str]) -> None:
        """
        Move the cursor down to the next ``name`` action and continue.

        If a trap for ``name`` sits right before where the cursor lands, the
        cursor is rewound to the step the trap was registered at and the
        trap callback runs instead.
        """
        step = self._require_recording("down")
        path = to_path(name)
        offset = self.actions.find(path)
        if offset is not None:
            self.actions.step = step + offset
        else:
            self.actions.step = len(self.actions)

        landed = self.actions.step
        previous = self.actions[landed - 1] if landed > 0 else None
        if isinstance(previous, Trap) and previous.path == path:
            logger.debug(
                "trap %s fired, rewinding to step %d", previous.name, previous.step
            )
            self.actions.step = previous.step
            previous.callback()
        else:
            logger.debug("down %s -> step %d", ".".join(path), landed)
            self.next()

    def jump(self, step: int) -> None:
        """Set the cursor to ``step`` and continue from there."""
        self._require_recording("jump")
        logger.debug("jump to step %d", step)
        self.actions.step = step
        self.next()

    def __repr__(self) -> str:
        mode = f"step={self.step}" if self.recording else "light"
        return f"Saw(depth={self.depth}, {len(self.actions)} actions, {mode})"
