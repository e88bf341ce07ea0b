"""Describing types and operations as plain data."""

from __future__ import annotations

import inspect
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from reflectorpy.codecs import plain_value
from reflectorpy.converters import ArrayReflectionConverter, MappingReflectionConverter
from reflectorpy.errors import NoConverterAvailable
from reflectorpy.members import member_type
from reflectorpy.typeid import is_nullable, item_type, runtime_class, type_id

if TYPE_CHECKING:
    from reflectorpy.methods import MethodData
    from reflectorpy.reflector import Reflector


@dataclass(frozen=True)
class MemberSchema:
    """Schema for a field or property."""

    name: str
    type_id: str
    description: str | None = None
    required: bool = False
    writable: bool = True
    kind: str = "Field"


@dataclass(frozen=True)
class TypeSchema:
    """Schema for a type: its members, element type and enum values."""

    type_id: str
    description: str | None
    fields: tuple[MemberSchema, ...]
    properties: tuple[MemberSchema, ...]
    items: str | None = None
    values: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ParameterSchema:
    """Schema for one operation parameter."""

    name: str
    type_id: str | None
    description: str | None = None
    required: bool = True
    default: Any = None


@dataclass(frozen=True)
class MethodSchema:
    """Schema for an operation: what a caller needs to build a request."""

    name: str
    description: str | None
    parameters: tuple[ParameterSchema, ...]
    return_type_id: str | None
    declaring_type_id: str | None
    is_static: bool = False
    is_async: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _class_description(cls: type | None) -> str | None:
    if cls is None:
        return None
    doc = cls.__dict__.get("__doc__")
    if not isinstance(doc, str) or not doc.strip():
        return None
    # dataclasses fill in "Name(field: type, ...)" when no docstring is given
    if doc.startswith(f"{cls.__name__}("):
        return None
    return inspect.cleandoc(doc).split("\n\n", 1)[0].replace("\n", " ")


def type_schema(reflector: Reflector, t: Any) -> TypeSchema:
    """Describe ``t`` as its converter sees it.

    Only the members the selected converter would walk are listed, so ignored
    members and opaque types show up the way they serialize.

    Args:
        reflector: Reflector whose converters and visibility apply
        t: Type descriptor

    Returns:
        The type schema

    Raises:
        NoConverterAvailable: If no converter handles ``t``

    """
    converter = reflector.get_converter(t)
    if converter is None:
        raise NoConverterAvailable(type_id(t))
    fields, props = converter.get_schema_members(reflector, t, reflector.options.visibility)

    field_schemas = tuple(
        MemberSchema(
            name=f.name,
            type_id=type_id(member_type(t, f)),
            description=f.description,
            required=not f.has_default and not is_nullable(f.type),
            writable=f.writable,
            kind=f.kind,
        )
        for f in fields
    )
    prop_schemas = tuple(
        MemberSchema(
            name=p.name,
            type_id=type_id(member_type(t, p)),
            description=p.description,
            writable=p.writable,
            kind=p.kind,
        )
        for p in props
    )

    items = None
    if isinstance(converter, ArrayReflectionConverter | MappingReflectionConverter):
        items = type_id(item_type(t))

    cls = runtime_class(t)
    values: tuple[str, ...] = ()
    if cls is not None and issubclass(cls, Enum):
        values = tuple(m.name for m in cls)

    return TypeSchema(
        type_id=type_id(t),
        description=_class_description(cls),
        fields=field_schemas,
        properties=prop_schemas,
        items=items,
        values=values,
    )


def method_schema(reflector: Reflector, method: MethodData) -> MethodSchema:
    """Describe an operation's parameters and return type."""
    parameters = tuple(
        ParameterSchema(
            name=p.name or "",
            type_id=p.type_name,
            description=p.description,
            required=not p.has_default and not is_nullable(p.annotation),
            default=plain_value(p.default, reflector.codecs) if p.has_default else None,
        )
        for p in method.parameters
    )
    return MethodSchema(
        name=method.name,
        description=method.description,
        parameters=parameters,
        return_type_id=method.return_type_name,
        declaring_type_id=method.declaring_type_name,
        is_static=method.is_static,
        is_async=method.is_async,
    )
