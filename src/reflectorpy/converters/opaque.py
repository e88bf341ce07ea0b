"""Opaque converters: values serialized as a single token or not walked at all."""

from __future__ import annotations

import sys
import types
from abc import abstractmethod
from typing import TYPE_CHECKING, Any

from reflectorpy.converters.base import EXACT_PRIORITY, MAX_DEPTH, ReflectionConverter
from reflectorpy.converters.generic import GenericReflectionConverter
from reflectorpy.errors import ReflectorError, TypeNotFound, UninstantiableType
from reflectorpy.member import SerializedMember
from reflectorpy.members import Visibility
from reflectorpy.typeid import inheritance_distance, runtime_class, type_id

if TYPE_CHECKING:
    from reflectorpy.context import DeserializationContext, SerializationContext
    from reflectorpy.logs import Logs
    from reflectorpy.reflector import Reflector


def _subclass_priority(base: type, t: Any) -> int:
    cls = runtime_class(t)
    if cls is None:
        return 0
    if cls is base:
        return EXACT_PRIORITY
    distance = inheritance_distance(base, cls)
    return MAX_DEPTH - distance if distance > 0 else 0


class IgnoreMembersReflectionConverter(GenericReflectionConverter):
    """Treats instances of ``target`` as opaque.

    With both flags set the object is emitted with an empty member list and
    deserializes to a fresh instance; with one flag set only the other member
    kind is walked. Cascade traversal is off, so no fallback re-walks the
    hidden members.

    Example:
        registry.add(IgnoreMembersReflectionConverter(socket.socket))

    """

    allow_cascade_serialization: bool = False

    def __init__(
        self,
        target: type,
        *,
        ignore_fields: bool = True,
        ignore_properties: bool = True,
    ) -> None:
        super().__init__(target)
        self.allow_cascade_fields = not ignore_fields
        self.allow_cascade_properties = not ignore_properties

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
        return self.serialize_members(
            reflector,
            obj,
            t,
            name,
            recursive=recursive,
            visibility=visibility,
            depth=depth,
            logs=logs,
            context=context,
        )


class _TokenReflectionConverter(ReflectionConverter):
    """A value that round-trips through one string token."""

    allow_cascade_serialization: bool = False
    allow_cascade_fields: bool = False
    allow_cascade_properties: bool = False

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
        if data.value is None:
            return None
        return self.from_token(reflector, str(data.value), t)

    @abstractmethod
    def from_token(self, reflector: Reflector, token: str, t: Any) -> Any:
        """Resolve the value a token names."""

    def set_value(
        self,
        reflector: Reflector,
        obj: Any,
        data: SerializedMember,
        t: Any,
        *,
        visibility: Visibility = Visibility.PUBLIC,
        depth: int = 0,
        logs: Logs | None = None,
    ) -> tuple[bool, Any]:
        try:
            return True, self.from_token(reflector, str(data.value), t)
        except ReflectorError as exc:
            if logs is not None:
                logs.error(str(exc), depth)
            return False, obj


class TypeReflectionConverter(_TokenReflectionConverter):
    """Serializes class objects as their canonical identity."""

    def serialization_priority(self, t: Any) -> int:
        return _subclass_priority(type, t)

    def serialize_value(self, reflector: Reflector, obj: Any) -> Any:
        return type_id(obj)

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        return object

    def from_token(self, reflector: Reflector, token: str, t: Any) -> Any:
        resolved = reflector.resolve_type(token)
        if resolved is None:
            raise TypeNotFound(token)
        return resolved


class ModuleReflectionConverter(_TokenReflectionConverter):
    """Serializes modules by name; only already loaded modules deserialize."""

    def serialization_priority(self, t: Any) -> int:
        return _subclass_priority(types.ModuleType, t)

    def serialize_value(self, reflector: Reflector, obj: Any) -> Any:
        return obj.__name__

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        raise UninstantiableType(type_id(t), "Modules are looked up by name, not created.")

    def from_token(self, reflector: Reflector, token: str, t: Any) -> Any:
        module = sys.modules.get(token)
        if module is None:
            raise UninstantiableType(type_id(t), f"Module '{token}' is not loaded.")
        return module
