"""Tracing hooks for observing chain execution."""

from __future__ import annotations

import time
from collections.abc import Callable
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Protocol, runtime_checkable

from chainsaw._actions import Action

# Optional OpenTelemetry imports - only needed if using OpenTelemetryHook
try:
    from opentelemetry.trace import (
        Status as _Status,
    )
    from opentelemetry.trace import (
        StatusCode as _StatusCode,
    )
    from opentelemetry.trace import (
        set_span_in_context as _set_span_in_context,
    )

    _HAS_OPENTELEMETRY = True
except ImportError:
    _HAS_OPENTELEMETRY = False
    _Status = None
    _StatusCode = None
    _set_span_in_context = None


# =============================================================================
# Hook Protocol
# =============================================================================


@runtime_checkable
class TraceHook(Protocol):
    """
    Protocol for trace hooks.

    A hook sees every operation the execution driver invokes. Implement
    this to integrate with logging, OpenTelemetry, or other tracing systems.

    Example:
        class MyHook:
            def on_enter(self, name, args, depth):
                print(f"{'  ' * depth}-> {name}{args}")
                return None  # span token

            def on_exit(self, span, name, duration_ms, depth):
                print(f"{'  ' * depth}<- {name} ({duration_ms:.2f}ms)")

            def on_error(self, span, name, error, duration_ms, depth):
                print(f"{'  ' * depth}<- {name} ERROR: {error}")
    """

    def on_enter(self, name: str, args: tuple[Any, ...], depth: int) -> Any:
        """
        Called before an operation runs.

        Args:
            name: Dotted operation path
            args: Positional arguments recorded for the call
            depth: Nesting depth of the chain (0 = top-level chain)

        Returns:
            Span token to pass to on_exit (can be None)
        """
        ...

    def on_exit(self, span: Any, name: str, duration_ms: float, depth: int) -> None:
        """
        Called after an operation returns.

        A next() call made by the operation only marks the chain to advance;
        the following operation starts after this one returns, so it is not
        part of this duration.
        """
        ...

    def on_error(
        self, span: Any, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        """Called if an operation raises. The exception is re-raised afterwards."""
        ...


# Context variable for global tracing
_trace_hook: ContextVar[TraceHook | None] = ContextVar("trace_hook", default=None)


@contextmanager
def use_tracing(hook: TraceHook):
    """
    Context manager to trace every chain created in scope.

    A chain keeps the hook it was created with, and so do the chains it
    nests, even once the ``with`` block has exited.

    Example:
        with use_tracing(LoggingHook(logger)), use_scheduler(ticks):
            chainsaw(build).add(5).add(10)
        ticks.run_until_idle()  # traced
    """
    old_hook = _trace_hook.get()
    _trace_hook.set(hook)
    try:
        yield hook
    finally:
        _trace_hook.set(old_hook)


def current_hook() -> TraceHook | None:
    return _trace_hook.get()


def invoke_traced(
    fn: Callable[..., Any], action: Action, hook: TraceHook, depth: int
) -> Any:
    """Call ``fn`` for ``action``, reporting to ``hook``."""
    name = action.name
    span = hook.on_enter(name, action.args, depth)
    start = time.perf_counter()
    try:
        result = fn(*action.args, **action.kwargs)
    except Exception as e:
        hook.on_error(span, name, e, (time.perf_counter() - start) * 1000, depth)
        raise
    hook.on_exit(span, name, (time.perf_counter() - start) * 1000, depth)
    return result


# =============================================================================
# Built-in Trace Hooks
# =============================================================================


class PrintHook:
    """
    Simple trace hook that prints to stdout.

    Example:
        with use_tracing(PrintHook()):
            chainsaw(build).add(5).do(check)

        # Output:
        # -> add(5)
        # <- add (0.02ms)
        # -> do(<function check>)
        #   -> add(-10)
        #   <- add (0.01ms)
        # <- do (0.05ms)
    """

    def __init__(self, indent: str = "  ", show_args: bool = True):
        self.indent = indent
        self.show_args = show_args

    def on_enter(self, name: str, args: tuple[Any, ...], depth: int) -> float:
        prefix = self.indent * depth
        if self.show_args:
            print(f"{prefix}-> {name}({', '.join(map(repr, args))})")
        else:
            print(f"{prefix}-> {name}")
        return time.perf_counter()

    def on_exit(self, span: float, name: str, duration_ms: float, depth: int) -> None:
        prefix = self.indent * depth
        print(f"{prefix}<- {name} ({duration_ms:.2f}ms)")

    def on_error(
        self, span: float, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        prefix = self.indent * depth
        print(f"{prefix}<- {name} ERROR: {error} ({duration_ms:.2f}ms)")


class LoggingHook:
    """
    Trace hook that logs to a Python logger.

    Example:
        import logging
        logger = logging.getLogger("chainsaw")

        with use_tracing(LoggingHook(logger)):
            chainsaw(build).add(5)
    """

    def __init__(self, logger, level: int = 10):  # 10 = DEBUG
        self.logger = logger
        self.level = level

    def on_enter(self, name: str, args: tuple[Any, ...], depth: int) -> dict:
        span = {"name": name, "depth": depth, "start": time.perf_counter()}
        self.logger.log(self.level, f"[ENTER] {name} args={args!r} (depth={depth})")
        return span

    def on_exit(self, span: dict, name: str, duration_ms: float, depth: int) -> None:
        self.logger.log(self.level, f"[EXIT] {name} ({duration_ms:.2f}ms)")

    def on_error(
        self, span: dict, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        self.logger.error(f"[ERROR] {name} -> {error} ({duration_ms:.2f}ms)")


class OpenTelemetryHook:
    """
    OpenTelemetry trace hook: one span per executed operation.

    Spans of a nested chain are children of the span of the operation that
    called nest(). The nested chain starts on a later tick, after that
    span has ended, so the parent is the last span opened one level up.

    Requires: pip install opentelemetry-api
    """

    def __init__(self, tracer, *, max_span_depth: int | None = None):
        if not _HAS_OPENTELEMETRY:
            raise ImportError(
                "OpenTelemetry is not installed. "
                "Install it with: pip install opentelemetry-api"
            )
        self.tracer = tracer
        self.max_span_depth = max_span_depth
        self._span_stack: list[Any] = []
        self._last_span_at_depth: dict[int, Any] = {}

    def on_enter(self, name: str, args: tuple[Any, ...], depth: int) -> Any:
        # Guaranteed non-None because __init__ checks _HAS_OPENTELEMETRY
        assert _set_span_in_context is not None

        if self.max_span_depth is not None and depth > self.max_span_depth:
            return None

        if self._span_stack:
            parent = self._span_stack[-1]
        else:
            parent = self._last_span_at_depth.get(depth - 1)
        parent_ctx = _set_span_in_context(parent) if parent is not None else None

        span = self.tracer.start_span(name, context=parent_ctx)
        span.set_attribute("chainsaw.operation", name)
        span.set_attribute("chainsaw.depth", depth)
        span.set_attribute("chainsaw.arg_count", len(args))

        self._span_stack.append(span)
        self._last_span_at_depth[depth] = span
        return span

    def on_exit(self, span: Any, name: str, duration_ms: float, depth: int) -> None:
        if span is None:
            return
        span.set_attribute("chainsaw.duration_ms", duration_ms)
        span.end()
        self._pop(span)

    def on_error(
        self, span: Any, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        if span is None:
            return

        # Guaranteed non-None because __init__ checks _HAS_OPENTELEMETRY
        assert _Status is not None
        assert _StatusCode is not None

        span.set_attribute("chainsaw.duration_ms", duration_ms)
        span.record_exception(error)
        span.set_status(_Status(_StatusCode.ERROR, str(error)))
        span.end()
        self._pop(span)

    def _pop(self, span: Any) -> None:
        if self._span_stack and self._span_stack[-1] is span:
            self._span_stack.pop()
        elif span in self._span_stack:
            self._span_stack.remove(span)
