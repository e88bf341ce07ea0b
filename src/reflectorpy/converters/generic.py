"""Structural converter bound to a class and its subclasses."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from reflectorpy.converters.base import ReflectionConverter, type_priority


class GenericReflectionConverter(ReflectionConverter):
    """Walks fields and properties of instances of ``target``.

    Bound to ``object`` it is the universal fallback: every class matches,
    with a score that falls off with inheritance distance, so it only wins
    when nothing more specific is registered. Bound to a concrete class it
    lets a caller hide members of that class.

    Example:
        registry.add(GenericReflectionConverter(Account, ignored_fields=["password"]))

    """

    def __init__(
        self,
        target: type = object,
        *,
        ignored_fields: Iterable[str] = (),
        ignored_properties: Iterable[str] = (),
    ) -> None:
        super().__init__(ignored_fields=ignored_fields, ignored_properties=ignored_properties)
        self._target: type | None = target

    @property
    def target(self) -> type | None:
        return self._target

    def serialization_priority(self, t: Any) -> int:
        target = self.target
        if target is None:
            return 0
        return type_priority(target, t)

    def __repr__(self) -> str:
        target = self.target
        name = target.__qualname__ if target is not None else "?"
        return f"{type(self).__name__}({name})"
