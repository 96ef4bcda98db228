"""The operation surface: a mutable tree of named operations."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any, overload

from chainsaw._errors import UnresolvedOperationError

Operation = Callable[..., Any]


class Surface:
    """
    Registry of the operations a chain exposes.

    Each name maps either to a callable operation or to a nested Surface
    (a group). Operations may register further operations at any time,
    including while they are running.

    Example:
        def build(saw):
            h = saw.handlers

            @h.operation
            def add(n):
                total.append(n)
                saw.next()

            @h.group("io").operation("print")
            def print_total():
                print(sum(total))
                saw.next()

        chainsaw(build).add(1).add(2).io.print()
    """

    def __init__(self) -> None:
        self._members: dict[str, Operation | Surface] = {}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Surface:
        """Build a surface from a (possibly nested) mapping of callables."""
        surface = cls()
        for name, value in mapping.items():
            if isinstance(value, Surface):
                surface._members[name] = value
            elif isinstance(value, Mapping):
                surface._members[name] = cls.from_mapping(value)
            elif callable(value):
                surface._members[name] = value
            else:
                raise TypeError(
                    f"Surface member {name!r} must be callable or a mapping, "
                    f"got {type(value).__name__}"
                )
        return surface

    def add(self, name: str, fn: Operation) -> Operation:
        """Register ``fn`` under ``name``, replacing any existing member."""
        if not callable(fn):
            raise TypeError(f"Operation {name!r} must be callable")
        self._members[name] = fn
        return fn

    @overload
    def operation(self, name_or_fn: Operation) -> Operation: ...

    @overload
    def operation(
        self, name_or_fn: str | None = None
    ) -> Callable[[Operation], Operation]: ...

    def operation(self, name_or_fn=None):
        """
        Decorator to register an operation.

        Used bare, the function name is the operation name. Pass a string to
        register under a different name (e.g. a Python keyword).
        """
        if callable(name_or_fn):
            return self.add(name_or_fn.__name__, name_or_fn)

        def decorator(fn: Operation) -> Operation:
            return self.add(name_or_fn or fn.__name__, fn)

        return decorator

    def group(self, name: str) -> Surface:
        """Return the nested surface ``name``, creating it if needed."""
        member = self._members.get(name)
        if member is None:
            member = self._members[name] = Surface()
        elif not isinstance(member, Surface):
            raise TypeError(f"{name!r} is an operation, not a group")
        return member

    def remove(self, name: str) -> None:
        del self._members[name]

    def get(self, name: str) -> Operation | Surface | None:
        return self._members.get(name)

    def resolve(self, path: Sequence[str]) -> Operation:
        """Walk ``path`` and return the operation at its end."""
        node: Operation | Surface = self
        for segment in path:
            if not isinstance(node, Surface) or segment not in node._members:
                raise UnresolvedOperationError(path, segment)
            node = node._members[segment]
        if isinstance(node, Surface):
            raise UnresolvedOperationError(path)
        return node

    def __getitem__(self, name: str) -> Operation | Surface:
        return self._members[name]

    def __setitem__(self, name: str, value: Operation | Surface) -> None:
        if isinstance(value, Surface):
            self._members[name] = value
        else:
            self.add(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._members

    def __iter__(self) -> Iterator[str]:
        # Copy so operations can register members while we are iterated.
        return iter(list(self._members))

    def __len__(self) -> int:
        return len(self._members)

    def __repr__(self) -> str:
        return f"Surface({', '.join(self._members)})"
