"""Base reflection converter: the structural field and property walk."""

from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from reflectorpy.codecs import plain_value
from reflectorpy.errors import (
    MemberNotFound,
    MemberNotWritable,
    ReflectorError,
    UninstantiableType,
)
from reflectorpy.logs import padding
from reflectorpy.member import SerializedMember, as_member
from reflectorpy.members import (
    FieldMember,
    PropertyMember,
    Visibility,
    instance_fields,
    member_type,
)
from reflectorpy.typeid import (
    inheritance_distance,
    is_abstract,
    is_castable,
    runtime_class,
    type_id,
    type_short_name,
)

if TYPE_CHECKING:
    from reflectorpy.context import DeserializationContext, SerializationContext
    from reflectorpy.logs import Logs
    from reflectorpy.reflector import Reflector

logger = logging.getLogger(__name__)

MAX_DEPTH = 10000
EXACT_PRIORITY = MAX_DEPTH + 1
ENUMERABLE_PRIORITY = MAX_DEPTH // 4
INHERITED_PRIORITY = MAX_DEPTH // 8


def type_priority(target: Any, t: Any) -> int:
    """Score how specifically a converter bound to ``target`` handles ``t``.

    Exact class match scores ``EXACT_PRIORITY``; a subclass scores
    ``INHERITED_PRIORITY`` minus its MRO distance, so nearer bases win and a
    converter bound to ``object`` is the last resort; unrelated types score 0.
    """
    cls = runtime_class(t)
    if cls is None:
        return 0
    if cls is target:
        return EXACT_PRIORITY
    distance = inheritance_distance(target, cls)
    if distance < 0:
        return 0
    return max(INHERITED_PRIORITY - distance, 1)


@dataclass(frozen=True)
class PopulateResult:
    """Outcome of an in-place populate.

    ``value`` is the populated object. Mutable objects are updated in place
    and returned as-is; immutable values (scalars, tuples) come back as a new
    object the caller stores in place of the old one.
    """

    success: bool
    value: Any = None

    def __bool__(self) -> bool:
        return self.success


class ReflectionConverter(ABC):
    """Strategy handling serialize, deserialize and populate for a type family.

    Subclasses score their fitness for a type with ``serialization_priority``
    (0 means "cannot handle") and override the hooks they specialize. The
    default implementation walks fields and properties, calling back into the
    reflector for every member value.

    Flags:
        allow_set_value: A payload ``value`` may replace the whole object
        allow_cascade_serialization: Members are serialized individually;
            when False the object becomes a single value token
        allow_cascade_fields: Fields take part in the walk
        allow_cascade_properties: Properties take part in the walk
    """

    allow_set_value: bool = True
    allow_cascade_serialization: bool = True
    allow_cascade_fields: bool = True
    allow_cascade_properties: bool = True

    def __init__(
        self,
        *,
        ignored_fields: Iterable[str] = (),
        ignored_properties: Iterable[str] = (),
    ) -> None:
        self.ignored_fields = frozenset(ignored_fields)
        self.ignored_properties = frozenset(ignored_properties)

    @abstractmethod
    def serialization_priority(self, t: Any) -> int:
        """Return how well this converter handles ``t`` (0 = not at all)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    # =========================================================================
    # Members
    # =========================================================================

    def get_fields(
        self,
        reflector: Reflector,
        t: Any,
        visibility: Visibility = Visibility.PUBLIC,
    ) -> tuple[FieldMember, ...]:
        if not self.allow_cascade_fields:
            return ()
        fields = reflector.metadata.get_members(t, visibility).fields
        return tuple(f for f in fields if f.name not in self.ignored_fields)

    def get_properties(
        self,
        reflector: Reflector,
        t: Any,
        visibility: Visibility = Visibility.PUBLIC,
    ) -> tuple[PropertyMember, ...]:
        if not self.allow_cascade_properties:
            return ()
        props = reflector.metadata.get_members(t, visibility).properties
        return tuple(p for p in props if p.name not in self.ignored_properties)

    def get_instance_fields(
        self,
        reflector: Reflector,
        obj: Any,
        t: Any,
        visibility: Visibility = Visibility.PUBLIC,
    ) -> tuple[FieldMember, ...]:
        """Declared fields of ``t`` followed by attributes set on ``obj`` alone."""
        fields = self.get_fields(reflector, t, visibility)
        if not self.allow_cascade_fields:
            return fields
        declared = reflector.metadata.get_members(t, Visibility.ALL).fields
        exclude = {f.name for f in declared} | self.ignored_fields
        return fields + instance_fields(obj, exclude, visibility)

    def get_schema_members(
        self,
        reflector: Reflector,
        t: Any,
        visibility: Visibility = Visibility.PUBLIC,
    ) -> tuple[tuple[FieldMember, ...], tuple[PropertyMember, ...]]:
        """Fields and properties a schema generator should describe for ``t``."""
        return self.get_fields(reflector, t, visibility), self.get_properties(reflector, t, visibility)

    # =========================================================================
    # Instances
    # =========================================================================

    def get_default_value(self, reflector: Reflector, t: Any) -> Any:
        return None

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        """Create an empty instance of ``t``.

        Tries the no-argument constructor first; classes whose constructor
        requires arguments are allocated with ``__new__`` and get their
        dataclass defaults applied.

        Raises:
            UninstantiableType: For abstract classes, protocols and non-classes

        """
        cls = runtime_class(t)
        if cls is None:
            raise UninstantiableType(type_id(t), "It is not a class.")
        if is_abstract(cls):
            raise UninstantiableType(type_id(t), "It is abstract or a protocol.")
        try:
            return cls()
        except TypeError:
            logger.debug("%s() needs arguments, allocating without __init__", cls.__qualname__)
        try:
            obj = cls.__new__(cls)
        except TypeError as exc:
            raise UninstantiableType(type_id(t), str(exc)) from exc
        if dataclasses.is_dataclass(cls):
            for f in dataclasses.fields(cls):
                if f.default is not dataclasses.MISSING:
                    object.__setattr__(obj, f.name, f.default)
                elif f.default_factory is not dataclasses.MISSING:
                    object.__setattr__(obj, f.name, f.default_factory())
        return obj

    # =========================================================================
    # Serialize
    # =========================================================================

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
        if not self.allow_cascade_serialization or not recursive:
            return SerializedMember.from_value(t, self.serialize_value(reflector, obj), name)
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

    def serialize_value(self, reflector: Reflector, obj: Any) -> Any:
        """Render obj as a single JSON-compatible payload."""
        return plain_value(obj, reflector.codecs)

    def serialize_members(
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
        result = SerializedMember(name=name, type_name=type_id(t), fields=[])
        for field in self.get_instance_fields(reflector, obj, t, visibility):
            result.add_field(
                reflector.serialize(
                    field.get(obj),
                    fallback_type=member_type(t, field),
                    name=field.name,
                    recursive=recursive,
                    visibility=visibility,
                    depth=depth + 1,
                    logs=logs,
                    context=context,
                ),
            )
        for prop in self.get_properties(reflector, t, visibility):
            try:
                value = prop.get(obj)
            except Exception as exc:  # a getter may raise on partially built objects
                if logs is not None:
                    logs.warning(f"Property '{prop.name}' getter failed: {exc}", depth + 1)
                continue
            result.add_prop(
                reflector.serialize(
                    value,
                    fallback_type=member_type(t, prop),
                    name=prop.name,
                    recursive=recursive,
                    visibility=visibility,
                    depth=depth + 1,
                    logs=logs,
                    context=context,
                ),
            )
        return result

    # =========================================================================
    # Deserialize
    # =========================================================================

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
        """Materialize ``data`` as an instance of ``t``.

        The new object is registered with the context before its members are
        read, so reference markers nested below it resolve to it.
        """
        if data.is_null:
            return None
        if data.value is not None and not data.has_members:
            data = self.expand_value(reflector, data, t)
            if data.value is not None:
                return self.deserialize_value(reflector, data, t, depth=depth, logs=logs)
        obj = self.create_instance(reflector, t)
        if context is not None:
            context.register(obj)
        self.deserialize_members(reflector, obj, data, t, depth=depth, logs=logs, context=context)
        return obj

    def expand_value(self, reflector: Reflector, data: SerializedMember, t: Any) -> SerializedMember:
        """Turn a raw mapping payload into field and property members."""
        if not isinstance(data.value, Mapping) or not self.allow_cascade_serialization:
            return data
        props = {p.name for p in self.get_properties(reflector, t, Visibility.ALL)}
        expanded = SerializedMember(name=data.name, type_name=data.type_name, fields=[])
        for key, raw in data.value.items():
            member = dataclasses.replace(as_member(raw), name=str(key))
            if key in props:
                expanded.add_prop(member)
            else:
                expanded.add_field(member)
        return expanded

    def deserialize_value(
        self,
        reflector: Reflector,
        data: SerializedMember,
        t: Any,
        *,
        depth: int = 0,
        logs: Logs | None = None,
    ) -> Any:
        """Convert a scalar payload; structural types accept only instances."""
        cls = runtime_class(t)
        if cls is not None and isinstance(data.value, cls):
            return data.value
        raise UninstantiableType(
            type_id(t),
            f"Expected fields or properties, got a value of type '{type(data.value).__name__}'.",
        )

    def deserialize_members(
        self,
        reflector: Reflector,
        obj: Any,
        data: SerializedMember,
        t: Any,
        *,
        depth: int = 0,
        logs: Logs | None = None,
        context: DeserializationContext | None = None,
    ) -> None:
        fields = {f.name: f for f in self.get_instance_fields(reflector, obj, t, Visibility.ALL)}
        props = {p.name: p for p in self.get_properties(reflector, t, Visibility.ALL)}
        for kind, members, targets in (
            ("Field", data.fields, fields),
            ("Property", data.props, props),
        ):
            for member in members or ():
                target = targets.get(member.name or "")
                if target is None:
                    if logs is not None:
                        logs.warning(
                            f"{kind} '{member.name}' not found in type '{type_short_name(t)}'.",
                            depth,
                        )
                    continue
                if isinstance(target, PropertyMember) and not target.writable:
                    if logs is not None:
                        logs.warning(f"Property '{target.name}' is read-only.", depth)
                    continue
                value = reflector.deserialize(
                    member,
                    fallback_type=member_type(t, target),
                    depth=depth + 1,
                    logs=logs,
                    context=context,
                )
                target.set(obj, value, force=True)

    # =========================================================================
    # Populate
    # =========================================================================

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
        """Update ``obj`` in place from ``data``.

        Each incoming field and property is applied on its own; a failing
        member is logged and the walk continues over its siblings. The result
        is successful only if every member succeeded.
        """
        if obj is None:
            try:
                value = reflector.deserialize(data, fallback_type=t, depth=depth, logs=logs)
            except ReflectorError as exc:
                _log_error(logs, str(exc), depth)
                return PopulateResult(False, None)
            return PopulateResult(True, value)

        if not is_castable(type(obj), t):
            _log_error(
                logs,
                f"Type mismatch between '{type_id(t)}' (expected) and '{type_id(type(obj))}'.",
                depth,
            )
            return PopulateResult(False, obj)

        success = True
        if self.allow_set_value and data.value is not None and not data.has_members:
            ok, obj = self.set_value(reflector, obj, data, t, visibility=visibility, depth=depth, logs=logs)
            success = success and ok

        for member in data.fields or ():
            ok, obj = self.populate_field(reflector, obj, member, t, visibility=visibility, depth=depth, logs=logs)
            success = success and ok
        for member in data.props or ():
            ok, obj = self.populate_property(reflector, obj, member, t, visibility=visibility, depth=depth, logs=logs)
            success = success and ok
        return PopulateResult(success, obj)

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
        """Apply a whole-value payload; structural types accept a raw mapping."""
        expanded = self.expand_value(reflector, data, t)
        if expanded is data:
            _log_error(
                logs,
                f"Value of type '{type(data.value).__name__}' cannot be applied to '{type_short_name(t)}'.",
                depth,
            )
            return False, obj
        result = self.populate(reflector, obj, expanded, t, visibility=visibility, depth=depth, logs=logs)
        return result.success, result.value

    def populate_field(
        self,
        reflector: Reflector,
        obj: Any,
        member: SerializedMember,
        t: Any,
        *,
        visibility: Visibility = Visibility.PUBLIC,
        depth: int = 0,
        logs: Logs | None = None,
    ) -> tuple[bool, Any]:
        if not member.name:
            _log_error(logs, "Field name is empty. It should be a valid field name.", depth)
            return False, obj
        fields = self.get_instance_fields(reflector, obj, t, visibility)
        target = next((f for f in fields if f.name == member.name), None)
        return self._populate_member(
            reflector, obj, member, t, target, [f.name for f in fields], "Field",
            visibility=visibility, depth=depth, logs=logs,
        )

    def populate_property(
        self,
        reflector: Reflector,
        obj: Any,
        member: SerializedMember,
        t: Any,
        *,
        visibility: Visibility = Visibility.PUBLIC,
        depth: int = 0,
        logs: Logs | None = None,
    ) -> tuple[bool, Any]:
        if not member.name:
            _log_error(logs, "Property name is empty. It should be a valid property name.", depth)
            return False, obj
        props = self.get_properties(reflector, t, visibility)
        target = next((p for p in props if p.name == member.name), None)
        return self._populate_member(
            reflector, obj, member, t, target, [p.name for p in props], "Property",
            visibility=visibility, depth=depth, logs=logs,
        )

    def _populate_member(
        self,
        reflector: Reflector,
        obj: Any,
        member: SerializedMember,
        t: Any,
        target: FieldMember | PropertyMember | None,
        available: list[str],
        kind: str,
        *,
        visibility: Visibility,
        depth: int,
        logs: Logs | None,
    ) -> tuple[bool, Any]:
        name = member.name or ""
        if target is None:
            hidden = reflector.metadata.get_members(t, Visibility.ALL)
            on_instance = any(f.name == name for f in instance_fields(obj, (), Visibility.ALL))
            if hidden.get_field(name) or hidden.get_property(name) or on_instance:
                error: ReflectorError = MemberNotWritable(
                    name, type_id(t), kind, reason=f"It is excluded by the {visibility} filter.",
                )
            else:
                error = MemberNotFound(name, type_id(t), available, kind)
            _log_error(logs, str(error), depth)
            return False, obj
        if not target.writable:
            _log_error(logs, str(MemberNotWritable(name, type_id(t), kind)), depth)
            return False, obj

        try:
            current = target.get(obj)
            result = reflector.populate(
                current,
                member,
                fallback_type=member_type(t, target),
                visibility=visibility,
                depth=depth + 1,
                logs=logs,
            )
            changed = result.value is not current and (result.success or current is None)
            if changed:
                target.set(obj, result.value)
        except Exception as exc:  # user getters and setters may raise anything
            _log_error(logs, f"{kind} '{name}' could not be set. {type(exc).__name__}: {exc}", depth)
            return False, obj
        if changed:
            if logs is not None:
                logs.success(f"{kind} '{name}' modified to '{result.value}'.", depth)
        return result.success, obj


def _log_error(logs: Logs | None, message: str, depth: int) -> None:
    if logs is not None:
        logs.error(message, depth)
    else:
        logger.debug("%s%s", padding(depth), message)
