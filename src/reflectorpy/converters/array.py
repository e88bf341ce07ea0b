"""Array and enumerable converter: lists, ranked arrays, sets and deques."""

from __future__ import annotations

import collections
import collections.abc
import inspect
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from reflectorpy.converters.base import (
    ENUMERABLE_PRIORITY,
    EXACT_PRIORITY,
    PopulateResult,
    ReflectionConverter,
)
from reflectorpy.errors import ArgumentCoercionFailed, ReflectorError, UninstantiableType
from reflectorpy.member import SerializedMember, as_member
from reflectorpy.members import Visibility
from reflectorpy.typeid import (
    Array,
    is_castable,
    item_type,
    runtime_class,
    type_id,
    type_short_name,
    unwrap_optional,
)

if TYPE_CHECKING:
    from reflectorpy.context import DeserializationContext, SerializationContext
    from reflectorpy.logs import Logs
    from reflectorpy.reflector import Reflector

_NOT_ENUMERABLE: tuple[type, ...] = (str, bytes, bytearray, memoryview, tuple, Mapping)
_ENUMERABLE: tuple[type, ...] = (
    collections.abc.Sequence,
    collections.abc.Set,
    collections.deque,
)


def index_name(index: int) -> str:
    """Member name of an element: ``[0]``, ``[1]``, ..."""
    return f"[{index}]"


def _element_type(t: Any) -> Any:
    element = item_type(t)
    return None if element is Any else element


def _build(cls: type, items: list[Any]) -> Any:
    if cls is list:
        return items
    if inspect.isabstract(cls) or cls.__module__ == "collections.abc":
        return set(items) if issubclass(cls, collections.abc.Set) else items
    return cls(items)


class ArrayReflectionConverter(ReflectionConverter):
    """Serializes enumerables as an ordered list of index-named members.

    ``list`` and ``Array[...]`` are exact matches. Other sequences, sets and
    deques match by shape with a lower score so a more specific converter
    registered for them wins. Strings, bytes, tuples and mappings are never
    handled here.

    The element type comes from the declared type (``list[int]``,
    ``Array[Person]``); each element may still carry its own runtime type.
    """

    allow_cascade_fields: bool = False
    allow_cascade_properties: bool = False

    def serialization_priority(self, t: Any) -> int:
        if isinstance(unwrap_optional(t), Array):
            return EXACT_PRIORITY
        cls = runtime_class(t)
        if cls is None or issubclass(cls, _NOT_ENUMERABLE):
            return 0
        if cls is list:
            return EXACT_PRIORITY
        if issubclass(cls, _ENUMERABLE):
            return ENUMERABLE_PRIORITY
        return 0

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        cls = runtime_class(t)
        if cls is None:
            raise UninstantiableType(type_id(t), "It is not a class.")
        return self._materialize(cls, [], t)

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
        element = _element_type(t)
        items = []
        for index, item in enumerate(obj):
            if item is not None and reflector.converters.is_blacklisted(type(item)):
                if logs is not None:
                    logs.debug(f"Skipping blacklisted element {index_name(index)}.", depth + 1)
                continue
            items.append(
                reflector.serialize(
                    item,
                    fallback_type=element,
                    name=index_name(index),
                    recursive=recursive,
                    visibility=visibility,
                    depth=depth + 1,
                    logs=logs,
                    context=context,
                ),
            )
        return SerializedMember(name=name, type_name=type_id(t), value=items)

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
        cls = runtime_class(t) or list
        raw = self._raw_items(data, t)
        items: list[Any] = []
        # Only a plain list can be registered before its elements exist.
        if context is not None and cls is list:
            context.register(items)
        element = _element_type(t)
        for index, entry in enumerate(raw):
            items.append(
                reflector.deserialize(
                    as_member(entry),
                    fallback_type=element,
                    fallback_name=index_name(index),
                    depth=depth + 1,
                    logs=logs,
                    context=context,
                ),
            )
        result = self._materialize(cls, items, t)
        if context is not None and result is not items:
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
        """Replace the elements of ``obj`` with the incoming ones.

        Mutable containers (list, set, deque) are updated in place; anything
        else is rebuilt and returned as the new value.
        """
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
            value = self.deserialize(reflector, data, t, depth=depth, logs=logs)
        except ReflectorError as exc:
            if logs is not None:
                logs.error(str(exc), depth)
            return PopulateResult(False, obj)
        if value is None:
            return PopulateResult(True, None)
        items = list(value)
        if isinstance(obj, list):
            obj[:] = items
        elif isinstance(obj, collections.deque):
            obj.clear()
            obj.extend(items)
        elif isinstance(obj, set):
            obj.clear()
            obj.update(items)
        else:
            obj = value
        if logs is not None:
            logs.success(f"'{type_short_name(t)}' populated with {len(items)} element(s).", depth)
        return PopulateResult(True, obj)

    @staticmethod
    def _raw_items(data: SerializedMember, t: Any) -> Iterable[Any]:
        raw = data.value
        if raw is None:
            return [*(data.fields or ()), *(data.props or ())]
        if isinstance(raw, str | bytes | Mapping) or not isinstance(raw, Iterable):
            raise ArgumentCoercionFailed(
                data.name,
                raw,
                type_id(t),
                "Expected a list of elements.",
            )
        return raw

    @staticmethod
    def _materialize(cls: type, items: list[Any], t: Any) -> Any:
        try:
            return _build(cls, items)
        except TypeError as exc:
            raise UninstantiableType(type_id(t), str(exc)) from exc
