"""Ordered converter set with priority-based selection and a type blacklist."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from reflectorpy.converters import (
    ArrayReflectionConverter,
    GenericReflectionConverter,
    MappingReflectionConverter,
    ModuleReflectionConverter,
    PrimitiveReflectionConverter,
    ReflectionConverter,
    TupleReflectionConverter,
    TypeReflectionConverter,
)
from reflectorpy.typeid import runtime_class, type_short_name

if TYPE_CHECKING:
    from reflectorpy.codecs import ScalarCodecs

logger = logging.getLogger(__name__)


class ConverterRegistry:
    """The converters a reflector chooses from.

    Selection scores every converter for the requested type and picks the
    highest non-zero score; ties go to the converter registered first.
    Registration is meant to happen during setup, before the registry is
    shared between threads.

    Example:
        registry = ConverterRegistry.default()
        registry.add(GenericReflectionConverter(Account, ignored_fields=["password"]))
        registry.blacklist(socket.socket)

    """

    def __init__(self, converters: Iterable[ReflectionConverter] = ()) -> None:
        self._converters: list[ReflectionConverter] = list(converters)
        self._blacklist: list[type] = []

    @classmethod
    def default(cls, codecs: ScalarCodecs | None = None) -> ConverterRegistry:
        """Registry holding the built-in converters in their standard order."""
        return cls(
            [
                PrimitiveReflectionConverter(codecs),
                ArrayReflectionConverter(),
                MappingReflectionConverter(),
                TupleReflectionConverter(),
                GenericReflectionConverter(object),
                TypeReflectionConverter(),
                ModuleReflectionConverter(),
            ],
        )

    # =========================================================================
    # Registration
    # =========================================================================

    def add(self, converter: ReflectionConverter) -> None:
        self._converters.append(converter)

    def remove(self, converter_type: type[ReflectionConverter]) -> int:
        """Remove every converter of exactly this class.

        Returns:
            Number of converters removed

        """
        before = len(self._converters)
        self._converters = [c for c in self._converters if type(c) is not converter_type]
        return before - len(self._converters)

    def all(self) -> tuple[ReflectionConverter, ...]:
        return tuple(self._converters)

    def __iter__(self) -> Iterator[ReflectionConverter]:
        return iter(tuple(self._converters))

    def __len__(self) -> int:
        return len(self._converters)

    # =========================================================================
    # Selection
    # =========================================================================

    def candidates(self, t: Any) -> list[tuple[int, ReflectionConverter]]:
        """Converters able to handle ``t`` with their scores, best first."""
        scored = [(c.serialization_priority(t), c) for c in self._converters]
        # sorted() is stable, so equal scores keep registration order
        return sorted(
            ((score, c) for score, c in scored if score > 0),
            key=lambda pair: pair[0],
            reverse=True,
        )

    def select(self, t: Any) -> ReflectionConverter | None:
        """The best converter for ``t``, or None if every score is 0."""
        found = self.candidates(t)
        if not found:
            logger.debug("No converter for %s", type_short_name(t))
            return None
        return found[0][1]

    # =========================================================================
    # Blacklist
    # =========================================================================

    def blacklist(self, *types: type) -> None:
        """Exclude types (and their subclasses) from serialization."""
        for t in types:
            if t not in self._blacklist:
                self._blacklist.append(t)

    def remove_blacklisted(self, t: type) -> bool:
        if t in self._blacklist:
            self._blacklist.remove(t)
            return True
        return False

    def is_blacklisted(self, t: Any) -> bool:
        cls = runtime_class(t)
        if cls is None or not self._blacklist:
            return False
        return any(issubclass(cls, banned) for banned in self._blacklist)
