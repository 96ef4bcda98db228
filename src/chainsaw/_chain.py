"""Fluent proxy that records calls instead of running them."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from chainsaw._actions import Action, Path
from chainsaw._surface import Surface

if TYPE_CHECKING:
    from chainsaw._saw import Saw


class Chain:
    """
    Chain-returning view of a Saw's operation surface.

    Looking up a name resolves it on the live surface: a group gives a
    nested Chain, an operation gives a recorder. Calling a recorder queues
    an Action and returns the root Chain, so calls can keep chaining:

        chainsaw(build).add(5).add(10).io.print()

    Nothing runs at call time. Names that are not valid identifiers can be
    reached with item access: ``chain["if"](x)``.
    """

    __slots__ = ("_saw", "_path")

    def __init__(self, saw: Saw, path: Path = ()):
        object.__setattr__(self, "_saw", saw)
        object.__setattr__(self, "_path", path)

    def _lookup(self, name: str) -> Chain | _Recorder | None:
        node: Any = self._saw.handlers
        for segment in self._path:
            node = node.get(segment) if isinstance(node, Surface) else None
        member = node.get(name) if isinstance(node, Surface) else None
        if member is None:
            return None
        path = self._path + (name,)
        if isinstance(member, Surface):
            return Chain(self._saw, path)
        return _Recorder(self._saw, path)

    def __getattr__(self, name: str) -> Chain | _Recorder:
        if name.startswith("__"):
            raise AttributeError(name)
        found = self._lookup(name)
        if found is None:
            raise AttributeError(
                f"Chain has no operation {'.'.join(self._path + (name,))!r}"
            )
        return found

    def __getitem__(self, name: str) -> Chain | _Recorder:
        found = self._lookup(name)
        if found is None:
            raise KeyError(".".join(self._path + (name,)))
        return found

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Chain is read-only; register operations on the surface")

    def __dir__(self) -> list[str]:
        node = self._saw.handlers
        for segment in self._path:
            node = node[segment]  # type: ignore[assignment]
        return list(node)

    def __repr__(self) -> str:
        where = ".".join(self._path) or "<root>"
        return f"Chain({where}, queued={len(self._saw.actions)})"


class _Recorder:
    """Callable standing in for one operation on a Chain."""

    __slots__ = ("_saw", "path")

    def __init__(self, saw: Saw, path: Path):
        self._saw = saw
        self.path = path

    def __call__(self, *args: Any, **kwargs: Any) -> Chain:
        self._saw.actions.append(Action(self.path, args, kwargs))
        return self._saw.root

    def __repr__(self) -> str:
        return f"<chained operation {'.'.join(self.path)}>"


def controller(chain: Chain) -> Saw:
    """
    The Saw behind a Chain, for listening to its lifecycle signals.

    Example:
        ch = chainsaw(build).add(5)
        controller(ch).on("end", lambda: print("done"))
    """
    return object.__getattribute__(chain, "_saw")
