"""Mapping converter: dictionaries as key-named members."""

from __future__ import annotations

import collections.abc
import dataclasses
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, get_args

from reflectorpy.codecs import plain_value
from reflectorpy.coercion import string_to_primitive
from reflectorpy.converters.base import (
    ENUMERABLE_PRIORITY,
    EXACT_PRIORITY,
    PopulateResult,
    ReflectionConverter,
)
from reflectorpy.errors import ArgumentCoercionFailed, UninstantiableType
from reflectorpy.member import SerializedMember, as_member
from reflectorpy.members import Visibility
from reflectorpy.typeid import is_castable, item_type, runtime_class, type_id, unwrap_optional

if TYPE_CHECKING:
    from reflectorpy.codecs import ScalarCodecs
    from reflectorpy.context import DeserializationContext, SerializationContext
    from reflectorpy.logs import Logs
    from reflectorpy.reflector import Reflector


def key_type(t: Any) -> Any:
    """Declared key type of a mapping descriptor (``Any`` when undeclared)."""
    args = get_args(unwrap_optional(t))
    return args[0] if len(args) == 2 else Any


def key_text(key: Any, codecs: ScalarCodecs | None = None) -> str:
    """Member name of a mapping entry."""
    if isinstance(key, Enum):
        return key.name
    if isinstance(key, str):
        return key
    return str(plain_value(key, codecs))


EMPTY_KEY_SEGMENT = "''"


def _value_type(t: Any) -> Any:
    value = item_type(t)
    return None if value is Any else value


@contextmanager
def _entry_path(
    context: SerializationContext | DeserializationContext | None,
    name: str | None,
) -> Iterator[None]:
    """Give an empty key its own path segment; contexts skip empty names."""
    empty = context is not None and name == ""
    if empty:
        context.enter(EMPTY_KEY_SEGMENT)
    try:
        yield
    finally:
        if empty:
            context.exit(EMPTY_KEY_SEGMENT)


class MappingReflectionConverter(ReflectionConverter):
    """Serializes mappings as one member per entry, named by the key.

    Keys are rendered as text (enum keys by member name) and parsed back with
    ``string_to_primitive`` against the declared key type, so
    ``dict[int, str]`` and ``dict[Color, int]`` round-trip. A raw JSON object
    is accepted wherever a mapping is expected.
    """

    allow_cascade_fields: bool = False
    allow_cascade_properties: bool = False

    def serialization_priority(self, t: Any) -> int:
        cls = runtime_class(t)
        if cls is None or not issubclass(cls, Mapping):
            return 0
        if cls is dict or cls.__module__ == collections.abc.__name__:
            return EXACT_PRIORITY
        return ENUMERABLE_PRIORITY

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        cls = runtime_class(t)
        if cls is None or cls.__module__ == collections.abc.__name__:
            return {}
        try:
            return cls()
        except TypeError as exc:
            raise UninstantiableType(type_id(t), str(exc)) from exc

    def serialize(
        self,
        reflector: Reflector,
        obj: Any,
        t: Any,
        name: str | None = None,
        *,
        recursive: bool = True,
        visibility: Visibility = Visibility.PUBLIC,
        depth: int = 0,
        logs: Logs | None = None,
        context: SerializationContext | None = None,
    ) -> SerializedMember:
        if obj is None:
            return SerializedMember.null(t, name)
        if not recursive:
            return SerializedMember.from_value(t, self.serialize_value(reflector, obj), name)
        value_type = _value_type(t)
        entries = []
        for key, value in obj.items():
            entry_name = key_text(key, reflector.codecs)
            with _entry_path(context, entry_name):
                entries.append(
                    reflector.serialize(
                        value,
                        fallback_type=value_type,
                        name=entry_name,
                        recursive=recursive,
                        visibility=visibility,
                        depth=depth + 1,
                        logs=logs,
                        context=context,
                    ),
                )
        return SerializedMember(name=name, type_name=type_id(t), fields=entries)

    def deserialize(
        self,
        reflector: Reflector,
        data: SerializedMember,
        t: Any,
        *,
        depth: int = 0,
        logs: Logs | None = None,
        context: DeserializationContext | None = None,
    ) -> Any:
        if data.is_null:
            return None
        obj = self.create_instance(reflector, t)
        target: MutableMapping[Any, Any] = obj if isinstance(obj, MutableMapping) else {}
        if context is not None:
            context.register(obj)
        value_type = _value_type(t)
        for entry in self._entries(data, t):
            key = self.parse_key(entry.name, t)
            with _entry_path(context, entry.name):
                target[key] = reflector.deserialize(
                    entry,
                    fallback_type=value_type,
                    fallback_name=entry.name,
                    depth=depth + 1,
                    logs=logs,
                    context=context,
                )
        if target is obj:
            return obj
        try:
            return type(obj)(target)
        except TypeError as exc:
            raise UninstantiableType(type_id(t), str(exc)) from exc

    def populate(
        self,
        reflector: Reflector,
        obj: Any,
        data: SerializedMember,
        t: Any,
        *,
        visibility: Visibility = Visibility.PUBLIC,
        depth: int = 0,
        logs: Logs | None = None,
    ) -> PopulateResult:
        """Populate entries by key; unknown keys are added."""
        if obj is None:
            return super().populate(reflector, obj, data, t, visibility=visibility, depth=depth, logs=logs)
        if not is_castable(type(obj), t):
            if logs is not None:
                logs.error(
                    f"Type mismatch between '{type_id(t)}' (expected) and '{type_id(type(obj))}'.",
                    depth,
                )
            return PopulateResult(False, obj)
        if not isinstance(obj, MutableMapping):
            if logs is not None:
                logs.error(f"Mapping of type '{type_id(type(obj))}' is read-only.", depth)
            return PopulateResult(False, obj)

        value_type = _value_type(t)
        success = True
        try:
            entries = self._entries(data, t)
        except ArgumentCoercionFailed as exc:
            if logs is not None:
                logs.error(str(exc), depth)
            return PopulateResult(False, obj)
        for entry in entries:
            try:
                key = self.parse_key(entry.name, t)
            except ArgumentCoercionFailed as exc:
                if logs is not None:
                    logs.error(str(exc), depth)
                success = False
                continue
            result = reflector.populate(
                obj.get(key),
                entry,
                fallback_type=value_type,
                visibility=visibility,
                depth=depth + 1,
                logs=logs,
            )
            if result.success:
                obj[key] = result.value
                if logs is not None:
                    logs.success(f"Entry '{entry.name}' modified.", depth)
            success = success and result.success
        return PopulateResult(success, obj)

    def parse_key(self, name: str | None, t: Any) -> Any:
        """Turn an entry name back into a key of the declared key type.

        Raises:
            ArgumentCoercionFailed: If the name is missing or not a valid key

        """
        if name is None:
            raise ArgumentCoercionFailed(None, name, type_id(t), "Entry name is empty.")
        return string_to_primitive(name, key_type(t))

    @staticmethod
    def _entries(data: SerializedMember, t: Any) -> list[SerializedMember]:
        if data.has_members:
            return [*(data.fields or ()), *(data.props or ())]
        if data.value is None:
            return []
        if not isinstance(data.value, Mapping):
            raise ArgumentCoercionFailed(data.name, data.value, type_id(t), "Expected an object.")
        entries = []
        for key, raw in data.value.items():
            entries.append(dataclasses.replace(as_member(raw), name=str(key)))
        return entries
