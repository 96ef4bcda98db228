"""Action records and the per-chain action queue."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from itertools import islice
from typing import Any

Path = tuple[str, ...]


def to_path(name: str | Sequence[str]) -> Path:
    """Normalize a single segment or a sequence of segments into a path."""
    if isinstance(name, str):
        return (name,)
    return tuple(name)


@dataclass(frozen=True)
class Action:
    """A deferred call: which operation to run and with what arguments."""

    path: Path
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def name(self) -> str:
        return ".".join(self.path)

    def __repr__(self) -> str:
        parts = [repr(a) for a in self.args]
        parts.extend(f"{k}={v!r}" for k, v in self.kwargs.items())
        return f"Action({self.name}({', '.join(parts)}))"


@dataclass(frozen=True)
class Trap:
    """
    An interception point registered while recording.

    Attributes:
        path: Operation path the trap guards
        step: Cursor position when the trap was registered
        callback: Called (with no arguments) when the trap fires
    """

    path: Path
    step: int
    callback: Callable[[], Any]

    @property
    def name(self) -> str:
        return ".".join(self.path)

    def __repr__(self) -> str:
        return f"Trap({self.name}, step={self.step})"


Record = Action | Trap


class ActionQueue:
    """
    Ordered queue of recorded actions with an optional replay cursor.

    In light mode, pop() consumes records destructively. Once record() has
    been called, records are kept and pop() advances ``step`` instead, so
    the queue can later be replayed from any position.

    Example:
        q = ActionQueue()
        q.append(Action(("add",), (5,)))
        q.record()
        q.pop()     # Action(add(5)), q.step == 1
        q.step = 0  # rewind
    """

    def __init__(self) -> None:
        self._records: deque[Record] = deque()
        self.step: int | None = None

    @property
    def recording(self) -> bool:
        return self.step is not None

    def record(self) -> None:
        """Switch to recording mode. Has no effect if already recording."""
        if self.step is None:
            self.step = 0

    def append(self, record: Record) -> None:
        self._records.append(record)

    def pop(self) -> Record | None:
        """Return the next pending record, or None if the queue is exhausted."""
        if self.step is None:
            return self._records.popleft() if self._records else None

        # The cursor stays put when exhausted so records appended later
        # are still picked up in order.
        if not 0 <= self.step < len(self._records):
            return None
        record = self._records[self.step]
        self.step += 1
        return record

    def find(self, path: Path) -> int | None:
        """
        Offset from the cursor of the next record whose path is ``path``.

        Traps registered at or before the current step are not candidates.
        Returns None when nothing matches.
        """
        assert self.step is not None
        for offset, record in enumerate(islice(self._records, self.step, None)):
            if isinstance(record, Trap) and record.step <= self.step:
                continue
            if record.path == path:
                return offset
        return None

    def pending(self) -> list[Record]:
        """Records not yet consumed."""
        if self.step is None:
            return list(self._records)
        return list(islice(self._records, self.step, None))

    def __getitem__(self, index: int) -> Record:
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __repr__(self) -> str:
        mode = "light" if self.step is None else f"step={self.step}"
        return f"ActionQueue({len(self._records)} records, {mode})"
