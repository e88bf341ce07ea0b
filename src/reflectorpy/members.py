"""Introspectable members of a type: fields and properties."""

from __future__ import annotations

import dataclasses
import inspect
import logging
import types
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Flag, auto
from typing import Any, ClassVar, get_args, get_origin, get_type_hints

from reflectorpy.cache import DEFAULT_CAPACITY, LruCache
from reflectorpy.typeid import Array, annotated_metadata, runtime_class, unwrap_optional

logger = logging.getLogger(__name__)


class Visibility(Flag):
    """Which members are introspected: public names, underscore names, or both."""

    PUBLIC = auto()
    NON_PUBLIC = auto()
    ALL = PUBLIC | NON_PUBLIC


@dataclass(frozen=True)
class Description:
    """Human-readable description attached with ``Annotated``.

    Example:
        @dataclass
        class Person:
            name: Annotated[str, Description("Full name")]

    """

    text: str


def visibility_of(name: str) -> Visibility:
    return Visibility.NON_PUBLIC if name.startswith("_") else Visibility.PUBLIC


def description_of(annotation: Any) -> str | None:
    for meta in annotated_metadata(annotation):
        if isinstance(meta, Description):
            return meta.text
    return None


@dataclass(frozen=True)
class FieldMember:
    """A data attribute declared on a class."""

    name: str
    type: Any
    owner: type
    description: str | None = None
    has_default: bool = False
    default: Any = None
    writable: bool = True

    kind: ClassVar[str] = "Field"

    def get(self, obj: Any) -> Any:
        return getattr(obj, self.name, None)

    def set(self, obj: Any, value: Any, *, force: bool = False) -> None:
        """Assign the attribute; ``force`` bypasses frozen dataclasses."""
        if force and not self.writable:
            object.__setattr__(obj, self.name, value)
        else:
            setattr(obj, self.name, value)


@dataclass(frozen=True)
class PropertyMember:
    """A ``property`` descriptor declared on a class."""

    name: str
    type: Any
    owner: type
    prop: property
    description: str | None = None

    kind: ClassVar[str] = "Property"

    @property
    def writable(self) -> bool:
        return self.prop.fset is not None

    def get(self, obj: Any) -> Any:
        return self.prop.__get__(obj, type(obj))

    def set(self, obj: Any, value: Any, *, force: bool = False) -> None:
        self.prop.__set__(obj, value)


type Member = FieldMember | PropertyMember


@dataclass(frozen=True)
class TypeMembers:
    """Fields and properties of one type under one visibility filter."""

    fields: tuple[FieldMember, ...]
    properties: tuple[PropertyMember, ...]

    def get_field(self, name: str) -> FieldMember | None:
        return next((f for f in self.fields if f.name == name), None)

    def get_property(self, name: str) -> PropertyMember | None:
        return next((p for p in self.properties if p.name == name), None)


_EMPTY = TypeMembers(fields=(), properties=())


# =============================================================================
# Introspection
# =============================================================================


def type_hints(cls: type) -> dict[str, Any]:
    try:
        return get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as exc:
        logger.debug("Unresolved annotations on %s: %s", cls.__qualname__, exc)
        hints: dict[str, Any] = {}
        for base in reversed(cls.__mro__):
            hints.update(inspect.get_annotations(base))
        return {k: (v if not isinstance(v, str) else Any) for k, v in hints.items()}


def _is_frozen(cls: type) -> bool:
    params = getattr(cls, "__dataclass_params__", None)
    return bool(params is not None and params.frozen)


def _skip_field(hint: Any) -> bool:
    return hint is ClassVar or get_origin(hint) is ClassVar


def _introspect_fields(cls: type, visibility: Visibility) -> tuple[FieldMember, ...]:
    hints = type_hints(cls)
    frozen = _is_frozen(cls)
    found: dict[str, FieldMember] = {}

    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if f.metadata.get("serialize", True) is False:
                continue
            has_default = f.default is not dataclasses.MISSING or (
                f.default_factory is not dataclasses.MISSING
            )
            default = f.default if f.default is not dataclasses.MISSING else None
            hint = hints.get(f.name, Any)
            found[f.name] = FieldMember(
                name=f.name,
                type=hint,
                owner=cls,
                description=f.metadata.get("description") or description_of(hint),
                has_default=has_default,
                default=default,
                writable=not frozen,
            )

    for name, hint in hints.items():
        if name in found or _skip_field(hint):
            continue
        if isinstance(inspect.getattr_static(cls, name, None), property):
            continue
        has_default = hasattr(cls, name)
        found[name] = FieldMember(
            name=name,
            type=hint,
            owner=cls,
            description=description_of(hint),
            has_default=has_default,
            default=getattr(cls, name, None) if has_default else None,
        )

    for base in cls.__mro__:
        for name in getattr(base, "__slots__", ()):
            if name in found or name.startswith("__"):
                continue
            found[name] = FieldMember(name=name, type=hints.get(name, Any), owner=cls)

    return tuple(
        f for f in found.values()
        if not f.name.startswith("__") and visibility_of(f.name) in visibility
    )


def _introspect_properties(cls: type, visibility: Visibility) -> tuple[PropertyMember, ...]:
    found: dict[str, PropertyMember] = {}
    for base in cls.__mro__:
        for name, attr in vars(base).items():
            if name in found or not isinstance(attr, property) or attr.fget is None:
                continue
            if name.startswith("__") or visibility_of(name) not in visibility:
                continue
            if getattr(attr.fget, "__deprecated__", None) is not None:
                continue
            try:
                returns = get_type_hints(attr.fget, include_extras=True).get("return", Any)
            except (NameError, TypeError):
                returns = Any
            doc = inspect.getdoc(attr)
            found[name] = PropertyMember(
                name=name,
                type=returns,
                owner=cls,
                prop=attr,
                description=description_of(returns) or (doc.splitlines()[0] if doc else None),
            )
    return tuple(found.values())


def introspect(t: Any, visibility: Visibility = Visibility.PUBLIC) -> TypeMembers:
    """Compute the members of a type without caching."""
    cls = runtime_class(t)
    if cls is None or cls.__module__ == "builtins":
        return _EMPTY
    return TypeMembers(
        fields=_introspect_fields(cls, visibility),
        properties=_introspect_properties(cls, visibility),
    )


def instance_fields(
    obj: Any,
    exclude: Iterable[str],
    visibility: Visibility = Visibility.PUBLIC,
) -> tuple[FieldMember, ...]:
    """Attributes set on ``obj`` itself that its class does not declare.

    Plain classes usually create their state in ``__init__`` without class
    annotations; these attributes are typed ``Any`` and serialize by their
    runtime type.

    Args:
        obj: Instance whose ``__dict__`` is read
        exclude: Names already covered (declared fields, ignored names)
        visibility: Filter applied to the attribute names

    """
    attrs = getattr(obj, "__dict__", None)
    if not isinstance(attrs, dict):
        return ()
    cls = type(obj)
    skip = set(exclude)
    return tuple(
        FieldMember(name=name, type=Any, owner=cls, has_default=True)
        for name in attrs
        if isinstance(name, str)
        and name not in skip
        and not name.startswith("__")
        and visibility_of(name) in visibility
        and not isinstance(inspect.getattr_static(cls, name, None), property)
    )


class MetadataCache:
    """Memoized member listings keyed by ``(type, visibility)``.

    Bounded by an LRU policy so exploring many ad-hoc types does not grow
    memory without limit. Owned by a ``Reflector`` instance; independent
    reflectors never share listings.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._members: LruCache[tuple[Any, Visibility], TypeMembers] = LruCache(capacity)

    def get_members(self, t: Any, visibility: Visibility = Visibility.PUBLIC) -> TypeMembers:
        cls = runtime_class(t)
        if cls is None:
            return _EMPTY
        return self._members.get_or_add((cls, visibility), lambda key: introspect(*key))

    def clear(self) -> None:
        self._members.clear()

    def __len__(self) -> int:
        return len(self._members)


# =============================================================================
# Generic specialization: member types of Box[int] rather than Box[T]
# =============================================================================


def type_arguments(t: Any) -> dict[Any, Any]:
    """Map the type parameters of a parameterized generic to its arguments."""
    t = unwrap_optional(t)
    origin = get_origin(t)
    args = get_args(t)
    params = getattr(origin, "__type_params__", ()) or getattr(origin, "__parameters__", ())
    if not isinstance(params, tuple) or not params or len(params) != len(args):
        return {}
    return dict(zip(params, args, strict=True))


def substitute_type_params(type_expr: Any, substitutions: dict[Any, Any]) -> Any:
    """Recursively substitute type parameters in a type expression."""
    if not substitutions:
        return type_expr
    if isinstance(type_expr, Array):
        return Array(substitute_type_params(type_expr.element, substitutions), type_expr.rank)
    try:
        if type_expr in substitutions:
            return substitutions[type_expr]
    except TypeError:
        return type_expr

    origin = get_origin(type_expr)
    args = get_args(type_expr)

    if origin is None or not args:
        return type_expr

    new_args = tuple(substitute_type_params(arg, substitutions) for arg in args)

    # UnionType (| operator) needs special reconstruction
    if isinstance(type_expr, types.UnionType):
        result = new_args[0]
        for arg in new_args[1:]:
            result = result | arg
        return result

    return origin[new_args]


def member_type(owner: Any, member: Member) -> Any:
    """Declared type of a member, specialized to the owner's type arguments."""
    return substitute_type_params(member.type, type_arguments(owner))
