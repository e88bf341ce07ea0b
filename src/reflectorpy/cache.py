"""Bounded LRU cache and module-scoped type listings."""

from __future__ import annotations

import inspect
import logging
import sys
import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterable
from types import ModuleType
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10000

_MISSING: Any = object()


class LruCache[K: Hashable, V]:
    """Thread-safe least-recently-used cache.

    Reads move a key to the most-recent end; inserts beyond ``capacity`` evict
    the oldest-unused entry. ``get_or_add`` runs its factory while holding the
    lock, so concurrent callers asking for the same key observe one
    computation.

    Args:
        capacity: Maximum number of entries kept (must be at least 1)

    Raises:
        ValueError: If capacity is below 1

    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            msg = f"Capacity must be at least 1, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._items: OrderedDict[K, V] = OrderedDict()
        self._lock = threading.Lock()

    def try_get(self, key: K) -> tuple[bool, V | None]:
        """Return ``(found, value)`` and mark the key as recently used."""
        with self._lock:
            value = self._items.get(key, _MISSING)
            if value is _MISSING:
                return False, None
            self._items.move_to_end(key)
            return True, value

    def get_or_add(self, key: K, factory: Callable[[K], V]) -> V:
        """Return the cached value for key, computing it on a miss."""
        with self._lock:
            value = self._items.get(key, _MISSING)
            if value is not _MISSING:
                self._items.move_to_end(key)
                return value
            value = factory(key)
            self._insert(key, value)
            return value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._insert(key, value)

    def remove(self, key: K) -> bool:
        with self._lock:
            return self._items.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def _insert(self, key: K, value: V) -> None:
        self._items[key] = value
        self._items.move_to_end(key)
        while len(self._items) > self.capacity:
            self._items.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# =============================================================================
# Type scope: which modules type names are resolved against
# =============================================================================


def _module_types(module: ModuleType) -> list[type]:
    """Classes defined in a module, including nested classes."""
    found: list[type] = []
    stack: list[Any] = [module]
    seen: set[int] = set()
    while stack:
        owner = stack.pop()
        try:
            members = list(vars(owner).values())
        except TypeError:
            continue
        for member in members:
            if not inspect.isclass(member) or id(member) in seen:
                continue
            if getattr(member, "__module__", None) != module.__name__:
                continue
            seen.add(id(member))
            found.append(member)
            stack.append(member)
    return found


class TypeScope:
    """The set of modules that type identities are resolved against.

    ``TypeScope()`` covers every module loaded at the time of the first scan;
    ``TypeScope(["app.models"])`` restricts resolution and method discovery to
    the named modules (``builtins`` is always included). Listings are memoized
    per module set and invalidated only by ``clear()``.
    """

    def __init__(self, modules: Iterable[str] | None = None) -> None:
        self._names = None if modules is None else ("builtins", *modules)
        self._lock = threading.Lock()
        self._types: dict[tuple[str, ...], list[type]] = {}
        self._by_identity: dict[tuple[str, ...], dict[str, type]] = {}
        self._resolved: dict[str, Any] = {}

    @property
    def module_names(self) -> tuple[str, ...]:
        if self._names is not None:
            return self._names
        return tuple(name for name, mod in list(sys.modules.items()) if mod is not None)

    def includes(self, module_name: str) -> bool:
        return self._names is None or module_name in self._names

    def modules(self) -> list[ModuleType]:
        mods = []
        for name in self.module_names:
            module = sys.modules.get(name)
            if isinstance(module, ModuleType):
                mods.append(module)
        return mods

    def all_types(self) -> list[type]:
        """Every class defined in the scope's modules."""
        key = self.module_names
        with self._lock:
            cached = self._types.get(key)
            if cached is not None:
                return cached
        found: list[type] = []
        for module in self.modules():
            found.extend(_module_types(module))
        with self._lock:
            self._types = {key: found}
        return found

    def find(self, identity: str) -> type | None:
        """Look up a class by its canonical identity."""
        from reflectorpy.typeid import type_id

        key = self.module_names
        with self._lock:
            index = self._by_identity.get(key)
        if index is None:
            index = {}
            for t in self.all_types():
                try:
                    index[type_id(t)] = t
                except (RecursionError, TypeError, AttributeError) as exc:
                    logger.debug("Skipping %r in the identity index: %s", t, exc)
            with self._lock:
                self._by_identity = {key: index}
        return index.get(identity)

    def find_by_name(self, name: str) -> type | None:
        """Look up a class by its bare name, if exactly one class has it."""
        matches = [t for t in self.all_types() if t.__name__ == name]
        if len(matches) == 1:
            return matches[0]
        return None

    def remember(self, identity: str, resolved: Any) -> None:
        with self._lock:
            self._resolved[identity] = resolved

    def recall(self, identity: str) -> tuple[bool, Any]:
        with self._lock:
            if identity in self._resolved:
                return True, self._resolved[identity]
        return False, None

    def clear(self) -> None:
        """Drop memoized listings and resolutions."""
        with self._lock:
            self._types.clear()
            self._by_identity.clear()
            self._resolved.clear()
