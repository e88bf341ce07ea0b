"""Per-call traversal state for cycle detection and reference paths."""

from __future__ import annotations

from typing import Any

ROOT_PATH = "#"
PATH_SEPARATOR = "/"


def _join(segments: list[str]) -> str:
    if not segments:
        return ROOT_PATH
    return PATH_SEPARATOR.join([ROOT_PATH, *segments])


class SerializationContext:
    """Tracks objects on the current serialization path.

    An object is registered when the walk enters it and unregistered when the
    call that registered it returns, so only ancestors of the current node are
    known. Meeting a registered object again means the graph has a cycle and
    the caller emits a reference marker pointing at ``path_of(obj)``.

    Identity is ``id()``-based; two equal but distinct objects are different
    nodes.
    """

    def __init__(self) -> None:
        self._visited: dict[int, tuple[Any, str]] = {}
        self._segments: list[str] = []

    def enter(self, name: str | None) -> None:
        if name:
            self._segments.append(name)

    def exit(self, name: str | None) -> None:
        if name and self._segments and self._segments[-1] == name:
            self._segments.pop()

    def try_register(self, obj: Any) -> bool:
        """Record obj at the current path; False if it is already on the path."""
        key = id(obj)
        if key in self._visited:
            return False
        # Hold a reference so the id cannot be reused while registered.
        self._visited[key] = (obj, self.current_path)
        return True

    def unregister(self, obj: Any) -> None:
        self._visited.pop(id(obj), None)

    def is_registered(self, obj: Any) -> bool:
        return id(obj) in self._visited

    def path_of(self, obj: Any) -> str:
        entry = self._visited.get(id(obj))
        return entry[1] if entry is not None else ROOT_PATH

    @property
    def current_path(self) -> str:
        return _join(self._segments)

    @property
    def depth(self) -> int:
        return len(self._segments)


class DeserializationContext:
    """Maps paths to objects materialized so far in one deserialization.

    Objects are registered as soon as they are created and before their own
    members are read, so a reference marker nested inside them can resolve
    back to the object under construction.
    """

    def __init__(self) -> None:
        self._objects: dict[str, Any] = {}
        self._segments: list[str] = []

    def enter(self, name: str | None) -> None:
        if name:
            self._segments.append(name)

    def exit(self, name: str | None) -> None:
        if name and self._segments and self._segments[-1] == name:
            self._segments.pop()

    def register(self, obj: Any) -> None:
        """Record obj at the current path (first registration wins)."""
        self._objects.setdefault(self.current_path, obj)

    def resolve(self, path: str) -> tuple[bool, Any]:
        """Return ``(found, obj)`` for a recorded path."""
        if path in self._objects:
            return True, self._objects[path]
        return False, None

    @property
    def current_path(self) -> str:
        return _join(self._segments)
