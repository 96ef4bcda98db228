"""Tests for the operation surface, the action queue and the tick scheduler."""

from __future__ import annotations

import asyncio

import pytest

from chainsaw import (
    Action,
    ActionQueue,
    AsyncioScheduler,
    Surface,
    TickScheduler,
    Trap,
    UnresolvedOperationError,
    use_scheduler,
)
from chainsaw._scheduler import current_scheduler

# =============================================================================
# Surface
# =============================================================================


class TestSurface:
    def test_operation_decorator(self):
        s = Surface()

        @s.operation
        def add(n):
            return n

        @s.operation("print")
        def print_(msg):
            return msg

        assert s["add"] is add
        assert s["print"] is print_
        assert "print_" not in s
        assert list(s) == ["add", "print"]
        assert len(s) == 2

    def test_group_is_created_once(self):
        s = Surface()
        io = s.group("io")
        assert s.group("io") is io
        io.add("read", lambda: None)
        assert s.resolve(["io", "read"]) is io["read"]

    def test_group_over_operation(self):
        s = Surface()
        s.add("io", lambda: None)
        with pytest.raises(TypeError):
            s.group("io")

    def test_add_requires_callable(self):
        with pytest.raises(TypeError):
            Surface().add("x", 3)

    def test_setitem(self):
        s = Surface()
        s["sub"] = Surface()
        s["op"] = len
        assert isinstance(s.get("sub"), Surface)
        assert s.resolve(("op",)) is len

    def test_from_mapping(self):
        s = Surface.from_mapping({"a": len, "b": {"c": max}})
        assert s.resolve(("b", "c")) is max
        with pytest.raises(TypeError):
            Surface.from_mapping({"a": 1})

    @pytest.mark.parametrize(
        "path, segment",
        [
            (("missing",), "missing"),
            (("io", "missing"), "missing"),
            (("op", "deeper"), "deeper"),
        ],
    )
    def test_resolve_missing(self, path, segment):
        s = Surface.from_mapping({"op": len, "io": {"read": len}})
        with pytest.raises(UnresolvedOperationError) as exc:
            s.resolve(path)
        assert exc.value.path == path
        assert exc.value.segment == segment

    def test_resolve_group_is_not_an_operation(self):
        s = Surface.from_mapping({"io": {"read": len}})
        with pytest.raises(UnresolvedOperationError, match="not callable"):
            s.resolve(("io",))

    def test_iteration_tolerates_registration(self):
        s = Surface.from_mapping({"a": len})
        for name in s:
            s.add(name + "2", len)
        assert "a2" in s


# =============================================================================
# ActionQueue
# =============================================================================


class TestActionQueue:
    def test_light_pop_consumes(self):
        q = ActionQueue()
        q.append(Action(("a",)))
        q.append(Action(("b",)))
        assert q.pop().path == ("a",)
        assert len(q) == 1
        assert q.pop().path == ("b",)
        assert q.pop() is None
        assert not q.recording

    def test_recording_pop_advances(self):
        q = ActionQueue()
        q.append(Action(("a",)))
        q.record()
        assert q.recording
        assert q.pop().path == ("a",)
        assert q.step == 1
        assert q.pop() is None
        assert q.step == 1
        q.append(Action(("b",)))
        assert q.pop().path == ("b",)

    def test_record_is_idempotent(self):
        q = ActionQueue()
        q.record()
        q.append(Action(("a",)))
        q.pop()
        q.record()
        assert q.step == 1

    def test_negative_step_is_exhausted(self):
        q = ActionQueue()
        q.record()
        q.append(Action(("a",)))
        q.step = -1
        assert q.pop() is None

    def test_find_skips_old_traps(self):
        q = ActionQueue()
        q.record()
        q.append(Action(("a",)))
        q.append(Trap(("b",), 0, lambda: None))
        q.append(Action(("b",)))
        q.step = 1
        assert q.find(("b",)) == 1
        assert q.find(("c",)) is None

    def test_find_sees_later_traps(self):
        q = ActionQueue()
        q.record()
        q.append(Trap(("b",), 3, lambda: None))
        assert q.find(("b",)) == 0

    def test_pending(self):
        q = ActionQueue()
        q.append(Action(("a",)))
        q.append(Action(("b",)))
        q.record()
        q.pop()
        assert [r.path for r in q.pending()] == [("b",)]

    def test_action_repr(self):
        assert repr(Action(("io", "print"), (1,), {"end": ""})) == (
            "Action(io.print(1, end=''))"
        )

    def test_action_hashable_with_kwargs(self):
        a = Action(("add",), (1,), {"times": 2})
        assert hash(a) == hash(Action(("add",), (1,), {"times": 3}))
        assert a != Action(("add",), (1,), {"times": 3})
        assert len({a, Action(("add",), (1,), {"times": 2})}) == 1


# =============================================================================
# Schedulers
# =============================================================================


class TestTickScheduler:
    def test_fifo(self):
        ticks = TickScheduler()
        seen = []
        ticks.call_soon(seen.append, 1)
        ticks.call_soon(seen.append, 2)
        assert seen == []
        assert ticks.tick()
        assert seen == [1]
        assert ticks.run_until_idle() == 1
        assert seen == [1, 2]
        assert not ticks.tick()

    def test_callbacks_scheduled_while_draining(self):
        ticks = TickScheduler()
        seen = []

        def first():
            seen.append("first")
            ticks.call_soon(seen.append, "second")

        ticks.call_soon(first)
        assert ticks.run_until_idle() == 2
        assert seen == ["first", "second"]

    def test_exceptions_propagate(self):
        ticks = TickScheduler()
        ticks.call_soon(lambda: 1 / 0)
        with pytest.raises(ZeroDivisionError):
            ticks.run_until_idle()


class TestCurrentScheduler:
    def test_use_scheduler_wins(self):
        ticks = TickScheduler()
        with use_scheduler(ticks) as active:
            assert active is ticks
            assert current_scheduler() is ticks

    def test_running_loop(self):
        async def main():
            return current_scheduler()

        scheduler = asyncio.run(main())
        assert isinstance(scheduler, AsyncioScheduler)
