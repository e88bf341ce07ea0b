"""Canonical type identity codec: type descriptor <-> string."""

from __future__ import annotations

import builtins
import collections.abc
import datetime
import enum
import inspect
import sys
import types
import uuid
from dataclasses import dataclass
from decimal import Decimal
from pathlib import PurePath
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    ForwardRef,
    TypeAliasType,
    TypeVar,
    Union,
    get_args,
    get_origin,
)

if TYPE_CHECKING:
    from reflectorpy.cache import TypeScope

GENERIC_OPEN = "<"
GENERIC_CLOSE = ">"
ARRAY_OPEN = "["
ARRAY_CLOSE = "]"
ARG_SEPARATOR = ", "
NESTED_SEPARATOR = "+"
ELLIPSIS_TOKEN = "..."
NONE_TYPE_ID = "builtins.NoneType"
UNION_TYPE_ID = "typing.Union"

# Modules every scope resolves against, whatever else it is restricted to.
CORE_MODULES: tuple[str, ...] = (
    "builtins",
    "typing",
    "types",
    "collections",
    "collections.abc",
    "datetime",
    "decimal",
    "enum",
    "pathlib",
    "uuid",
)

PRIMITIVE_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    Decimal,
    datetime.datetime,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    PurePath,
    enum.Enum,
)

_NUMERIC_TOWER: dict[type, tuple[type, ...]] = {
    int: (float, complex, Decimal),
    float: (complex,),
}

_ENUMERABLE_ORIGINS: tuple[type, ...] = (
    list,
    set,
    frozenset,
    collections.deque,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Collection,
    collections.abc.Iterable,
)


@dataclass(frozen=True)
class Array:
    """Fixed-rank array type descriptor.

    Python has no ranked array type, so ``Array`` stands in for one in type
    annotations. Runtime values are plain lists; a rank-2 array is a list of
    equally long lists.

    Example:
        Array[int]       # builtins.int[]
        Array[int, 2]    # builtins.int[,]
        list[Array[int]] # builtins.list<builtins.int[]>

    """

    element: Any
    rank: int = 1

    def __post_init__(self) -> None:
        if self.rank < 1:
            msg = f"Array rank must be at least 1, got {self.rank}"
            raise ValueError(msg)

    def __class_getitem__(cls, params: Any) -> Array:
        if isinstance(params, tuple):
            element, rank = params
            return cls(element, rank)
        return cls(params)

    def __or__(self, other: Any) -> Any:
        return Union[self, other]

    def __ror__(self, other: Any) -> Any:
        return Union[other, self]

    @property
    def item(self) -> Any:
        """Type of one element along the first dimension."""
        if self.rank == 1:
            return self.element
        return Array(self.element, self.rank - 1)


# =============================================================================
# Normalization helpers
# =============================================================================


def _is_union(t: Any) -> bool:
    return get_origin(t) in (Union, types.UnionType)


def unwrap_optional(t: Any) -> Any:
    """Strip ``Annotated``, type aliases and ``X | None`` down to ``X``."""
    while True:
        if isinstance(t, TypeAliasType):
            t = t.__value__
            continue
        if get_origin(t) is Annotated:
            t = get_args(t)[0]
            continue
        if _is_union(t):
            args = get_args(t)
            rest = [a for a in args if a is not type(None)]
            if len(rest) == 1 and len(rest) != len(args):
                t = rest[0]
                continue
        return t


def annotated_metadata(t: Any) -> tuple[Any, ...]:
    """Return ``Annotated`` metadata of an annotation, looking through ``| None``."""
    metadata: list[Any] = []
    while True:
        if isinstance(t, TypeAliasType):
            t = t.__value__
            continue
        if get_origin(t) is Annotated:
            metadata.extend(t.__metadata__)
            t = get_args(t)[0]
            continue
        if _is_union(t):
            rest = [a for a in get_args(t) if a is not type(None)]
            if len(rest) == 1:
                t = rest[0]
                continue
        return tuple(metadata)


def is_nullable(t: Any) -> bool:
    """True if the annotation admits None."""
    while isinstance(t, TypeAliasType) or get_origin(t) is Annotated:
        t = t.__value__ if isinstance(t, TypeAliasType) else get_args(t)[0]
    return t is None or t is type(None) or t is Any or (
        _is_union(t) and type(None) in get_args(t)
    )


def runtime_class(t: Any) -> type | None:
    """The class a value of type ``t`` is an instance of, if there is one."""
    t = unwrap_optional(t)
    if isinstance(t, Array):
        return list
    if t is Any:
        return None
    if t is None:
        return type(None)
    origin = get_origin(t)
    if origin is not None:
        return origin if isinstance(origin, type) else None
    return t if isinstance(t, type) else None


# =============================================================================
# Encoding: descriptor -> identity
# =============================================================================


def _qualified(t: Any) -> str | None:
    module = getattr(t, "__module__", None)
    qualname = getattr(t, "__qualname__", None) or getattr(t, "__name__", None)
    if not module or not isinstance(qualname, str):
        return None
    return f"{module}.{qualname.replace('.', NESTED_SEPARATOR)}"


def _array_suffix(rank: int) -> str:
    return f"{ARRAY_OPEN}{',' * (rank - 1)}{ARRAY_CLOSE}"


def type_id(t: Any) -> str:
    """Encode a type descriptor as its canonical identity string.

    Total and deterministic: every input yields a string. Descriptors that no
    decoder can resolve (type variables, forward references) encode to their
    textual form.

    Args:
        t: A class, parameterized generic, ``Array`` descriptor or typing form

    Returns:
        Canonical identity such as ``builtins.dict<builtins.str, builtins.int[]>``

    """
    t = unwrap_optional(t)
    if t is None or t is type(None):
        return NONE_TYPE_ID
    if t is Ellipsis:
        return ELLIPSIS_TOKEN
    if isinstance(t, Array):
        return f"{type_id(t.element)}{_array_suffix(t.rank)}"
    if _is_union(t):
        return f"{UNION_TYPE_ID}{GENERIC_OPEN}{ARG_SEPARATOR.join(type_id(a) for a in get_args(t))}{GENERIC_CLOSE}"
    origin = get_origin(t)
    # bare typing.Generic and typing.Protocol report themselves as origin
    if origin is not None and origin is not t:
        base = type_id(origin)
        args = get_args(t)
        if not args:
            return base
        return f"{base}{GENERIC_OPEN}{ARG_SEPARATOR.join(type_id(a) for a in args)}{GENERIC_CLOSE}"
    if isinstance(t, TypeVar):
        return t.__name__
    if isinstance(t, ForwardRef):
        return t.__forward_arg__
    if isinstance(t, str):
        return t
    qualified = _qualified(t)
    if qualified is not None:
        return qualified
    return repr(t)


def type_short_name(t: Any) -> str:
    """Human-readable name for messages: ``list<int>``, ``int[,]``, ``Outer.Inner``."""
    t = unwrap_optional(t)
    if t is None or t is type(None):
        return "None"
    if t is Ellipsis:
        return ELLIPSIS_TOKEN
    if isinstance(t, Array):
        return f"{type_short_name(t.element)}{_array_suffix(t.rank)}"
    if _is_union(t):
        return " | ".join(type_short_name(a) for a in get_args(t))
    origin = get_origin(t)
    if origin is not None and origin is not t:
        args = get_args(t)
        base = type_short_name(origin)
        if not args:
            return base
        return f"{base}{GENERIC_OPEN}{ARG_SEPARATOR.join(type_short_name(a) for a in args)}{GENERIC_CLOSE}"
    name = getattr(t, "__qualname__", None) or getattr(t, "__name__", None)
    if isinstance(name, str):
        return name
    return str(t)


# =============================================================================
# Decoding: identity -> descriptor
# =============================================================================


def _matching_close(text: str, open_at: int) -> int:
    """Index of the bracket closing the one at ``open_at``, or -1."""
    depth = 0
    for i in range(open_at, len(text)):
        if text[i] == GENERIC_OPEN:
            depth += 1
        elif text[i] == GENERIC_CLOSE:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_arguments(text: str) -> list[str] | None:
    """Split generic arguments on top-level commas."""
    parts: list[str] = []
    angle = 0
    square = 0
    start = 0
    for i, ch in enumerate(text):
        if ch == GENERIC_OPEN:
            angle += 1
        elif ch == GENERIC_CLOSE:
            angle -= 1
        elif ch == ARRAY_OPEN:
            square += 1
        elif ch == ARRAY_CLOSE:
            square -= 1
        elif ch == "," and angle == 0 and square == 0:
            parts.append(text[start:i].strip())
            start = i + 1
        if angle < 0 or square < 0:
            return None
    parts.append(text[start:].strip())
    if angle != 0 or square != 0 or any(not p for p in parts):
        return None
    return parts


def _is_type_like(obj: Any) -> bool:
    return (
        inspect.isclass(obj)
        or obj is Any
        or obj is Union
        or isinstance(obj, TypeAliasType)
        or get_origin(obj) is not None
    )


def _in_scope(module_name: str, scope: TypeScope | None) -> bool:
    return scope is None or module_name in CORE_MODULES or scope.includes(module_name)


def _lookup_module_path(identity: str, scope: TypeScope | None) -> Any | None:
    parts = identity.split(".")
    for cut in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:cut])
        module = sys.modules.get(module_name)
        if module is None or not _in_scope(module_name, scope):
            continue
        obj: Any = module
        for attr in ".".join(parts[cut:]).replace(NESTED_SEPARATOR, ".").split("."):
            obj = getattr(obj, attr, None)
            if obj is None:
                break
        if obj is not None and _is_type_like(obj):
            return obj
    return None


def _resolve_named(identity: str, scope: TypeScope | None) -> Any | None:
    if identity == NONE_TYPE_ID or identity == "None":
        return type(None)
    if "." not in identity:
        builtin = getattr(builtins, identity.replace(NESTED_SEPARATOR, "."), None)
        if inspect.isclass(builtin):
            return builtin
        if scope is not None:
            return scope.find_by_name(identity)
        return None
    found = _lookup_module_path(identity, scope)
    if found is None and scope is not None:
        found = scope.find(identity)
    return found


def _resolve_array(identity: str, scope: TypeScope | None) -> Any | None:
    start = identity.rfind(ARRAY_OPEN)
    inner = identity[start + 1 : -1]
    if start <= 0 or set(inner) - {","}:
        return None
    element = resolve_type(identity[:start], scope)
    if element is None:
        return None
    return Array(element, len(inner) + 1)


def _resolve_generic(identity: str, scope: TypeScope | None) -> Any | None:
    open_at = identity.find(GENERIC_OPEN)
    if open_at <= 0 or _matching_close(identity, open_at) != len(identity) - 1:
        return None
    arguments = _split_arguments(identity[open_at + 1 : -1])
    if arguments is None:
        return None
    definition = resolve_type(identity[:open_at], scope)
    if definition is None:
        return None
    resolved = []
    for argument in arguments:
        arg = resolve_type(argument, scope)
        if arg is None:
            return None
        resolved.append(arg)
    try:
        if len(resolved) == 1:
            return definition[resolved[0]]
        return definition[tuple(resolved)]
    except TypeError:
        return None


def resolve_type(identity: str | None, scope: TypeScope | None = None) -> Any | None:
    """Decode a canonical identity back to its type descriptor.

    Resolution tries, in order: the scope's memo, an array suffix (element
    decoded recursively), a generic instantiation (definition and arguments
    decoded recursively), a direct ``module.QualName`` lookup among loaded
    modules, the scope's identity index, and finally a bare class name when
    exactly one class in scope carries it.

    Args:
        identity: Canonical identity string
        scope: Modules to resolve against (None means every loaded module)

    Returns:
        The type descriptor, or None for unknown or malformed identities.

    """
    if not identity or not identity.strip():
        return None
    identity = identity.strip()
    if scope is not None:
        found, value = scope.recall(identity)
        if found:
            return value
    if identity == ELLIPSIS_TOKEN:
        resolved: Any = Ellipsis
    elif identity.endswith(ARRAY_CLOSE):
        resolved = _resolve_array(identity, scope)
    elif identity.endswith(GENERIC_CLOSE):
        resolved = _resolve_generic(identity, scope)
    else:
        resolved = _resolve_named(identity, scope)
    if resolved is not None and scope is not None:
        scope.remember(identity, resolved)
    return resolved


# =============================================================================
# Type relations
# =============================================================================


def inheritance_distance(base: Any, t: Any) -> int:
    """Steps from ``t`` up to ``base`` along the MRO, or -1 if unrelated.

    Virtual subclasses (``collections.abc`` registrations) report a distance
    one past the end of the concrete MRO.
    """
    base_cls = runtime_class(base)
    cls = runtime_class(t)
    if base_cls is None or cls is None:
        return -1
    mro = cls.__mro__
    if base_cls in mro:
        return mro.index(base_cls)
    try:
        if issubclass(cls, base_cls):
            return len(mro)
    except TypeError:
        return -1
    return -1


def is_castable(source: Any, target: Any) -> bool:
    """True if a value of type ``source`` may be stored where ``target`` is declared."""
    target = unwrap_optional(target)
    source = unwrap_optional(source)
    if target is None or target is Any or target is object:
        return True
    if source is None or source is type(None):
        return True
    if _is_union(target):
        return any(is_castable(source, option) for option in get_args(target))
    if isinstance(target, Array):
        if isinstance(source, Array):
            return source.rank == target.rank and is_castable(source.element, target.element)
        return runtime_class(source) is list
    source_cls = runtime_class(source)
    target_cls = runtime_class(target)
    if source_cls is None or target_cls is None:
        return source == target
    if source_cls is not bool and target_cls in _NUMERIC_TOWER.get(source_cls, ()):
        return True
    try:
        return issubclass(source_cls, target_cls)
    except TypeError:
        return False


def is_primitive(t: Any) -> bool:
    """True for scalar types serialized as a single value."""
    cls = runtime_class(t)
    if cls is None or get_origin(unwrap_optional(t)) is not None:
        return False
    return issubclass(cls, PRIMITIVE_TYPES)


def is_abstract(t: Any) -> bool:
    """True for abstract classes and protocols, which cannot be instantiated."""
    cls = runtime_class(t)
    if cls is None:
        return False
    return inspect.isabstract(cls) or bool(getattr(cls, "_is_protocol", False))


def item_type(t: Any) -> Any:
    """Element type of an enumerable descriptor (``Any`` when undeclared)."""
    t = unwrap_optional(t)
    if isinstance(t, Array):
        return t.item
    origin = get_origin(t)
    args = get_args(t)
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        return Any
    if isinstance(origin, type) and args:
        if issubclass(origin, collections.abc.Mapping):
            return args[-1]
        if issubclass(origin, _ENUMERABLE_ORIGINS):
            return args[0]
    return Any
