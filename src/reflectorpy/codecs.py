"""Scalar value codecs and plain-builtins conversion."""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping
from collections.abc import Set as AbstractSet
from dataclasses import fields, is_dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path, PurePath
from typing import Any
from uuid import UUID

from reflectorpy.typeid import type_id

type Encoder = Callable[[Any], Any]
type Decoder = Callable[[Any], Any]


class ScalarCodecs:
    """Registry of encode/decode functions for scalar types.

    A codec turns a value into a JSON-compatible scalar (``encode``) and back
    (``decode``). Lookup walks the MRO, so a codec registered for ``PurePath``
    also serves ``PosixPath``. Each ``Reflector`` owns one instance, created
    with codecs for the builtin scalar types already registered.

    Usage:
        codecs = ScalarCodecs()
        codecs.register(
            Money,
            encode=lambda m: f"{m.amount} {m.currency}",
            decode=Money.parse,
        )
    """

    def __init__(self, *, builtins: bool = True) -> None:
        self._registry: dict[type, tuple[Encoder, Decoder]] = {}
        if builtins:
            _register_builtins(self)

    def register[T](
        self,
        typ: type[T],
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        """Make ``typ`` (and its subclasses) serialize as a single scalar.

        A registered type is picked up by ``PrimitiveReflectionConverter``
        with exact priority, replacing the structural member walk.

        Args:
            typ: Class to register; replaces any earlier codec for it
            encode: Returns a str, number or bool for a ``typ`` instance
            decode: Rebuilds the instance from what ``encode`` produced

        """
        self._registry[typ] = (encode, decode)

    def get(self, typ: type) -> tuple[Encoder, Decoder] | None:
        """Get codec for exactly this type, or None if not registered."""
        return self._registry.get(typ)

    def lookup(self, typ: Any) -> tuple[type, Encoder, Decoder] | None:
        """Get the codec for a type or its nearest registered base class."""
        if not isinstance(typ, type):
            return None
        for base in typ.__mro__:
            if codec := self._registry.get(base):
                encode, decode = codec
                return base, encode, decode
        return None

    def unregister(self, typ: type) -> bool:
        """Unregister a type's codec.

        Returns:
            True if the type was registered and removed, False otherwise.

        """
        if typ in self._registry:
            del self._registry[typ]
            return True
        return False

    def clear(self) -> None:
        """Clear codec registry and re-register builtins."""
        self._registry.clear()
        _register_builtins(self)

    def __contains__(self, typ: object) -> bool:
        return isinstance(typ, type) and self.lookup(typ) is not None

    def encode(self, value: Any) -> Any:
        """Encode a value with its codec, or return it unchanged."""
        found = self.lookup(type(value))
        if found is None:
            return value
        _, encode, _ = found
        return encode(value)


def _b64(data: bytes | bytearray) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


_BUILTIN_CODECS: tuple[tuple[type, Encoder, Decoder], ...] = (
    (bytes, _b64, base64.b64decode),
    (bytearray, _b64, lambda s: bytearray(base64.b64decode(s))),
    (datetime, datetime.isoformat, datetime.fromisoformat),
    (date, date.isoformat, date.fromisoformat),
    (time, time.isoformat, time.fromisoformat),
    # seconds as a float, e.g. 90.0
    (timedelta, timedelta.total_seconds, lambda s: timedelta(seconds=float(s))),
    (Decimal, str, lambda v: Decimal(str(v))),
    (UUID, str, lambda v: UUID(str(v))),
    (complex, str, lambda v: complex(str(v).replace(" ", ""))),
    (PurePath, str, Path),
)


def _register_builtins(codecs: ScalarCodecs) -> None:
    for typ, encode, decode in _BUILTIN_CODECS:
        codecs.register(typ, encode=encode, decode=decode)


# =============================================================================
# Plain builtins: the JSON-compatible rendering of arbitrary values
# =============================================================================


def plain_value(obj: Any, codecs: ScalarCodecs | None = None) -> Any:
    """Convert an object tree to JSON-compatible Python builtins.

    Used where a value is emitted as a single payload instead of a member
    tree (non-recursive serialization, opaque converters, invocation results).

    Args:
        obj: Any Python object
        codecs: Scalar codecs to apply (builtin codecs when omitted)

    Returns:
        JSON-compatible Python value (dict, list, str, int, float, bool, None)

    """
    codecs = codecs if codecs is not None else _DEFAULT_CODECS
    return _plain(obj, codecs, set())


def _plain(obj: Any, codecs: ScalarCodecs, active: set[int]) -> Any:
    # 1. JSON-native scalars pass through
    if obj is None or isinstance(obj, bool | int | float | str) and not isinstance(obj, Enum):
        return obj

    # 2. Enums by member name; composite flags read "A|B", an empty flag has no name
    if isinstance(obj, Enum):
        return obj.name if obj.name is not None else obj.value

    # 3. Registered codecs
    if type(obj) in codecs:
        return codecs.encode(obj)

    # 4. Types by identity
    if isinstance(obj, type):
        return type_id(obj)

    if id(obj) in active:
        return None
    active.add(id(obj))
    try:
        # 5. Mappings
        if isinstance(obj, Mapping):
            return {str(k): _plain(v, codecs, active) for k, v in obj.items()}

        # 6. Dataclasses
        if is_dataclass(obj):
            return {
                f.name: _plain(getattr(obj, f.name), codecs, active)
                for f in fields(obj)
                if not f.name.startswith("_")
            }

        # 7. Sequences and sets
        if isinstance(obj, list | tuple | AbstractSet) or (
            hasattr(obj, "__iter__") and hasattr(obj, "__len__") and not hasattr(obj, "__dict__")
        ):
            return [_plain(item, codecs, active) for item in obj]

        # 8. Plain objects by public attributes
        if hasattr(obj, "__dict__"):
            return {
                k: _plain(v, codecs, active)
                for k, v in vars(obj).items()
                if not k.startswith("_")
            }
    finally:
        active.discard(id(obj))

    return str(obj)


_DEFAULT_CODECS = ScalarCodecs()
