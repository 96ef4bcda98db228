"""Tests for tracing hooks."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from chainsaw import (
    LoggingHook,
    OpenTelemetryHook,
    PrintHook,
    TickScheduler,
    TraceHook,
    chainsaw,
    use_scheduler,
    use_tracing,
)


def build(saw):
    h = saw.handlers

    @h.operation
    def add(n):
        saw.next()

    @h.operation
    def boom():
        raise ValueError("boom")

    @h.operation
    def inner(cb):
        saw.nest(cb)


def start(hook, ticks=None):
    ticks = ticks or TickScheduler()
    with use_tracing(hook), use_scheduler(ticks):
        return chainsaw(build), ticks


# ---------------------------------------------------------------------------
# Hook dispatch
# ---------------------------------------------------------------------------


class TestHookDispatch:
    def test_builtin_hooks_satisfy_protocol(self):
        assert isinstance(PrintHook(), TraceHook)
        assert isinstance(LoggingHook(MagicMock()), TraceHook)

    def test_enter_and_exit(self):
        hook = MagicMock()
        ch, ticks = start(hook)
        ch.add(1)
        ticks.run_until_idle()
        hook.on_enter.assert_called_once_with("add", (1,), 0)
        hook.on_exit.assert_called_once()
        span, name, duration_ms, depth = hook.on_exit.call_args.args
        assert span is hook.on_enter.return_value
        assert name == "add"
        assert duration_ms >= 0
        assert depth == 0

    def test_nested_chain_depth(self):
        hook = MagicMock()
        ch, ticks = start(hook)
        ch.inner(lambda c: c.add(2))
        ticks.run_until_idle()
        depths = [c.args[2] for c in hook.on_enter.call_args_list]
        assert depths == [0, 1]

    def test_error_reported_and_reraised(self):
        hook = MagicMock()
        ch, ticks = start(hook)
        ch.boom()
        with pytest.raises(ValueError, match="boom"):
            ticks.run_until_idle()
        hook.on_error.assert_called_once()
        assert isinstance(hook.on_error.call_args.args[2], ValueError)
        hook.on_exit.assert_not_called()

    def test_hook_captured_at_creation(self):
        hook = MagicMock()
        ch, ticks = start(hook)
        # use_tracing() has exited; the chain still reports to its hook.
        ch.add(1)
        ticks.run_until_idle()
        assert hook.on_enter.called

    def test_no_hook_outside_scope(self):
        hook = MagicMock()
        with use_tracing(hook):
            pass
        ticks = TickScheduler()
        with use_scheduler(ticks):
            chainsaw(build).add(1)
        ticks.run_until_idle()
        hook.on_enter.assert_not_called()


# ---------------------------------------------------------------------------
# Built-in hooks
# ---------------------------------------------------------------------------


class TestPrintHook:
    def test_output(self, capsys):
        ch, ticks = start(PrintHook())
        ch.add(1)
        ticks.run_until_idle()
        out = capsys.readouterr().out
        assert "-> add(1)" in out
        assert "<- add" in out

    def test_nested_output_is_indented(self, capsys):
        ch, ticks = start(PrintHook(show_args=False))
        ch.inner(lambda c: c.add(2))
        ticks.run_until_idle()
        lines = capsys.readouterr().out.splitlines()
        assert "-> inner" in lines
        assert "  -> add" in lines


class TestLoggingHook:
    def test_logs_enter_and_exit(self):
        logger = MagicMock()
        ch, ticks = start(LoggingHook(logger))
        ch.add(1)
        ticks.run_until_idle()
        messages = [c.args[1] for c in logger.log.call_args_list]
        assert messages[0] == "[ENTER] add args=(1,) (depth=0)"
        assert messages[1].startswith("[EXIT] add")
        assert all(c.args[0] == 10 for c in logger.log.call_args_list)

    def test_logs_errors(self):
        logger = MagicMock()
        ch, ticks = start(LoggingHook(logger, level=20))
        ch.boom()
        with pytest.raises(ValueError):
            ticks.run_until_idle()
        logger.error.assert_called_once()
        assert "[ERROR] boom -> boom" in logger.error.call_args.args[0]


class TestOpenTelemetryHook:
    def test_spans(self):
        pytest.importorskip("opentelemetry")
        tracer = MagicMock()
        ch, ticks = start(OpenTelemetryHook(tracer))
        ch.add(1).add(2)
        ticks.run_until_idle()
        assert tracer.start_span.call_count == 2
        first = tracer.start_span.call_args_list[0]
        assert first.args == ("add",)
        assert first.kwargs["context"] is None
        span = tracer.start_span.return_value
        assert span.end.call_count == 2
        span.set_attribute.assert_any_call("chainsaw.operation", "add")

    def test_error_status(self):
        pytest.importorskip("opentelemetry")
        tracer = MagicMock()
        ch, ticks = start(OpenTelemetryHook(tracer))
        ch.boom()
        with pytest.raises(ValueError):
            ticks.run_until_idle()
        span = tracer.start_span.return_value
        span.record_exception.assert_called_once()
        span.set_status.assert_called_once()
        span.end.assert_called_once()

    def test_max_span_depth(self):
        pytest.importorskip("opentelemetry")
        tracer = MagicMock()
        ch, ticks = start(OpenTelemetryHook(tracer, max_span_depth=0))
        ch.inner(lambda c: c.add(2))
        ticks.run_until_idle()
        names = [c.args[0] for c in tracer.start_span.call_args_list]
        assert names == ["inner"]

    def test_nested_spans_have_parent(self):
        pytest.importorskip("opentelemetry")
        tracer = MagicMock()
        ch, ticks = start(OpenTelemetryHook(tracer))
        ch.inner(lambda c: c.add(2))
        ticks.run_until_idle()
        calls = tracer.start_span.call_args_list
        assert [c.args[0] for c in calls] == ["inner", "add"]
        assert calls[0].kwargs["context"] is None
        assert calls[1].kwargs["context"] is not None
