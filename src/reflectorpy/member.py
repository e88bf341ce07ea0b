"""Intermediate, type-preserving tree produced by serialization."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from reflectorpy.typeid import type_id

REFERENCE_TYPE_NAME = "$ref"
REFERENCE_KEY = "$ref"

# Wire keys
_NAME = "name"
_TYPE_NAME = "typeName"
_VALUE = "value"
_FIELDS = "fields"
_PROPS = "props"

_MEMBER_KEYS = frozenset({_NAME, _TYPE_NAME, _VALUE, _FIELDS, _PROPS})
_INDEX_NAME = re.compile(r"^\[\d+\]$")


@dataclass
class SerializedMember:
    """One node of the serialized tree.

    A node carries either a scalar ``value`` or child ``fields``/``props``.
    Enumerables put their index-named element nodes in ``value``. A reference
    marker has ``type_name == "$ref"`` and the path of the already emitted
    node as its value.
    """

    name: str | None = None
    type_name: str | None = None
    value: Any = None
    fields: list[SerializedMember] | None = None
    props: list[SerializedMember] | None = None

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def null(cls, t: Any = None, name: str | None = None) -> SerializedMember:
        return cls(name=name, type_name=type_id(t) if t is not None else None)

    @classmethod
    def from_value(cls, t: Any, value: Any, name: str | None = None) -> SerializedMember:
        return cls(name=name, type_name=type_id(t), value=value)

    @classmethod
    def reference(cls, path: str, name: str | None = None) -> SerializedMember:
        return cls(name=name, type_name=REFERENCE_TYPE_NAME, value=path)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def is_reference(self) -> bool:
        return self.type_name == REFERENCE_TYPE_NAME

    @property
    def reference_path(self) -> str | None:
        """Target path of a reference marker (``"#/a/b"``)."""
        if not self.is_reference:
            return None
        if isinstance(self.value, Mapping):
            path = self.value.get(REFERENCE_KEY)
            return path if isinstance(path, str) else None
        return self.value if isinstance(self.value, str) else None

    @property
    def is_null(self) -> bool:
        return self.value is None and self.fields is None and self.props is None

    @property
    def has_members(self) -> bool:
        return bool(self.fields) or bool(self.props)

    def get_field(self, name: str) -> SerializedMember | None:
        return next((f for f in self.fields or () if f.name == name), None)

    def get_prop(self, name: str) -> SerializedMember | None:
        return next((p for p in self.props or () if p.name == name), None)

    def add_field(self, member: SerializedMember) -> SerializedMember:
        if self.fields is None:
            self.fields = []
        self.fields.append(member)
        return self

    def add_prop(self, member: SerializedMember) -> SerializedMember:
        if self.props is None:
            self.props = []
        self.props.append(member)
        return self

    # =========================================================================
    # Wire form
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Render as the JSON-compatible wire shape, omitting empty keys."""
        result: dict[str, Any] = {}
        if self.name is not None:
            result[_NAME] = self.name
        if self.type_name is not None:
            result[_TYPE_NAME] = self.type_name
        if self.fields is not None:
            result[_FIELDS] = [f.to_dict() for f in self.fields]
        if self.props is not None:
            result[_PROPS] = [p.to_dict() for p in self.props]
        if self.value is not None:
            result[_VALUE] = _value_to_wire(self.value)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SerializedMember:
        """Build a member from its wire shape.

        Raises:
            TypeError: If data is not a mapping

        """
        if not isinstance(data, Mapping):
            msg = f"Expected a mapping for a serialized member, got {type(data).__name__}"
            raise TypeError(msg)
        return cls(
            name=data.get(_NAME),
            type_name=data.get(_TYPE_NAME),
            value=data.get(_VALUE),
            fields=_members_from_wire(data.get(_FIELDS)),
            props=_members_from_wire(data.get(_PROPS)),
        )

    @staticmethod
    def looks_like_member(data: Any) -> bool:
        """True if a raw mapping is the wire shape of a member.

        Only member keys may appear, and at least one of ``typeName``,
        ``value``, ``fields`` or ``props`` must be present. A bare
        ``{"name": ...}`` is a member only when the name is an element index,
        so user data such as ``{"name": "Bob"}`` stays a raw value.
        """
        if not isinstance(data, Mapping) or not data:
            return False
        if not all(isinstance(k, str) and k in _MEMBER_KEYS for k in data):
            return False
        if len(data) > 1 or _NAME not in data:
            return True
        name = data[_NAME]
        return isinstance(name, str) and _INDEX_NAME.match(name) is not None

    def __str__(self) -> str:
        label = self.name or "<root>"
        if self.is_reference:
            return f"{label}: -> {self.reference_path}"
        return f"{label}: {self.type_name or '?'}"


def _value_to_wire(value: Any) -> Any:
    if isinstance(value, SerializedMember):
        return value.to_dict()
    if isinstance(value, list | tuple):
        return [_value_to_wire(v) for v in value]
    return value


def _members_from_wire(items: Iterable[Any] | None) -> list[SerializedMember] | None:
    if items is None:
        return None
    return [
        item if isinstance(item, SerializedMember) else SerializedMember.from_dict(item)
        for item in items
    ]


def as_member(data: Any) -> SerializedMember:
    """Interpret a raw payload as a member.

    Serialized members pass through, mappings shaped like a member are parsed,
    and anything else becomes an untyped member carrying the raw value.
    """
    if isinstance(data, SerializedMember):
        return data
    if SerializedMember.looks_like_member(data):
        return SerializedMember.from_dict(data)
    return SerializedMember(value=data)
