"""Tuple converter: fixed-length tuples and named tuples."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, get_args

from reflectorpy.converters.array import index_name
from reflectorpy.converters.base import EXACT_PRIORITY, MAX_DEPTH, PopulateResult, ReflectionConverter
from reflectorpy.errors import ArgumentCoercionFailed, MemberNotFound, ReflectorError, UninstantiableType
from reflectorpy.member import SerializedMember, as_member
from reflectorpy.members import Visibility, type_hints
from reflectorpy.typeid import inheritance_distance, is_castable, runtime_class, type_id, unwrap_optional

if TYPE_CHECKING:
    from reflectorpy.context import DeserializationContext, SerializationContext
    from reflectorpy.logs import Logs
    from reflectorpy.reflector import Reflector


def _is_named(cls: type) -> bool:
    return issubclass(cls, tuple) and hasattr(cls, "_fields")


def element_names(cls: type, length: int) -> list[str]:
    """Member names of a tuple's elements: namedtuple fields or ``[i]``."""
    if _is_named(cls):
        return list(cls._fields)  # type: ignore[attr-defined]
    return [index_name(i) for i in range(length)]


def element_types(t: Any, length: int) -> list[Any]:
    """Declared element types, padded with None where nothing is declared."""
    t = unwrap_optional(t)
    args = get_args(t)
    if len(args) == 2 and args[1] is Ellipsis:
        return [args[0]] * length
    declared: list[Any] = list(args)
    cls = runtime_class(t)
    if not declared and cls is not None and _is_named(cls):
        hints = type_hints(cls)
        declared = [hints.get(name) for name in cls._fields]  # type: ignore[attr-defined]
    return (declared + [None] * length)[:length]


class TupleReflectionConverter(ReflectionConverter):
    """Serializes tuples element by element as fields.

    Plain tuples name their elements ``[0]``, ``[1]``, ...; named tuples use
    their field names. Tuples are immutable, so populate returns a new tuple
    with the updated elements.
    """

    allow_cascade_fields: bool = False
    allow_cascade_properties: bool = False

    def serialization_priority(self, t: Any) -> int:
        cls = runtime_class(t)
        if cls is None:
            return 0
        if cls is tuple:
            return EXACT_PRIORITY
        distance = inheritance_distance(tuple, cls)
        return MAX_DEPTH - distance if distance > 0 else 0

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        cls = runtime_class(t)
        if cls is None or cls is tuple:
            return ()
        if _is_named(cls):
            defaults = getattr(cls, "_field_defaults", {})
            return cls(*(defaults.get(name) for name in cls._fields))  # type: ignore[attr-defined]
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
        names = element_names(type(obj), len(obj))
        types = element_types(t, len(obj))
        fields = [
            reflector.serialize(
                item,
                fallback_type=types[i],
                name=names[i],
                recursive=recursive,
                visibility=visibility,
                depth=depth + 1,
                logs=logs,
                context=context,
            )
            for i, item in enumerate(obj)
        ]
        return SerializedMember(name=name, type_name=type_id(t), fields=fields)

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
        cls = runtime_class(t) or tuple
        entries = self._entries(data, t)
        names = element_names(cls, len(entries))
        if _is_named(cls):
            by_name = {e.name: e for e in entries}
            ordered = [by_name.get(n) for n in names]
            if any(e is None for e in ordered) and len(entries) == len(names):
                ordered = entries
        else:
            ordered = entries
        types = element_types(t, len(names))
        items = [
            None
            if entry is None
            else reflector.deserialize(
                entry,
                fallback_type=types[i],
                fallback_name=names[i],
                depth=depth + 1,
                logs=logs,
                context=context,
            )
            for i, entry in enumerate(ordered)
        ]
        result = self._build(cls, items, t)
        if context is not None:
            context.register(result)
        return result

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
        """Return a copy of ``obj`` with the incoming elements replaced."""
        if obj is None:
            return super().populate(reflector, obj, data, t, visibility=visibility, depth=depth, logs=logs)
        if not is_castable(type(obj), t):
            if logs is not None:
                logs.error(
                    f"Type mismatch between '{type_id(t)}' (expected) and '{type_id(type(obj))}'.",
                    depth,
                )
            return PopulateResult(False, obj)
        try:
            entries = self._entries(data, t)
        except ReflectorError as exc:
            if logs is not None:
                logs.error(str(exc), depth)
            return PopulateResult(False, obj)

        items = list(obj)
        names = element_names(type(obj), len(items))
        types = element_types(t, len(items))
        success = True
        for position, entry in enumerate(entries):
            if entry.name in names:
                index = names.index(entry.name)
            elif entry.name is None and position < len(items):
                index = position
            else:
                if logs is not None:
                    error = MemberNotFound(entry.name or "", type_id(t), names, "Element")
                    logs.error(str(error), depth)
                success = False
                continue
            result = reflector.populate(
                items[index],
                entry,
                fallback_type=types[index],
                visibility=visibility,
                depth=depth + 1,
                logs=logs,
            )
            if result.success:
                items[index] = result.value
            success = success and result.success
        try:
            rebuilt = self._build(type(obj), items, t)
        except ReflectorError as exc:
            if logs is not None:
                logs.error(str(exc), depth)
            return PopulateResult(False, obj)
        return PopulateResult(success, rebuilt)

    @staticmethod
    def _entries(data: SerializedMember, t: Any) -> list[SerializedMember]:
        if data.has_members:
            return [*(data.fields or ()), *(data.props or ())]
        raw = data.value
        if raw is None:
            return []
        if isinstance(raw, Mapping):
            return [dataclasses.replace(as_member(v), name=str(k)) for k, v in raw.items()]
        if isinstance(raw, list | tuple):
            return [as_member(item) for item in raw]
        raise ArgumentCoercionFailed(data.name, raw, type_id(t), "Expected a list of elements.")

    @staticmethod
    def _build(cls: type, items: list[Any], t: Any) -> Any:
        try:
            if cls is tuple:
                return tuple(items)
            if _is_named(cls):
                return cls(*items)
            return cls(items)
        except TypeError as exc:
            raise UninstantiableType(type_id(t), str(exc)) from exc
