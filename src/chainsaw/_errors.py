"""Exceptions raised by chainsaw."""

from __future__ import annotations

from collections.abc import Sequence


class ChainsawError(Exception):
    """Base class for all chainsaw errors."""


class RecordingRequiredError(ChainsawError, RuntimeError):
    """Raised when trap/down/jump are used on a chain that is not recording."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(
            f"{method}(): to use the trap, down and jump features, please "
            "call record() first to start recording actions."
        )


class UnresolvedOperationError(ChainsawError, LookupError):
    """Raised when an action's path does not name an operation on the surface."""

    def __init__(self, path: Sequence[str], segment: str | None = None):
        self.path = tuple(path)
        self.segment = segment
        dotted = ".".join(self.path) or "<root>"
        if segment is not None:
            msg = f"Cannot resolve operation {dotted!r}: no member {segment!r}"
        else:
            msg = f"Cannot resolve operation {dotted!r}: not callable"
        super().__init__(msg)


class SchedulerError(ChainsawError, RuntimeError):
    """Raised when a chain is started with no scheduler available."""
