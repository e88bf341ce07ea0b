"""Converter bound to a type by name, resolved on first use."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from reflectorpy.converters.generic import GenericReflectionConverter
from reflectorpy.members import Visibility
from reflectorpy.typeid import resolve_type

if TYPE_CHECKING:
    from reflectorpy.context import DeserializationContext, SerializationContext
    from reflectorpy.converters.base import PopulateResult, ReflectionConverter
    from reflectorpy.logs import Logs
    from reflectorpy.member import SerializedMember
    from reflectorpy.members import FieldMember, PropertyMember
    from reflectorpy.reflector import Reflector

logger = logging.getLogger(__name__)


class LazyReflectionConverter(GenericReflectionConverter):
    """Structural converter for a type that may not be importable yet.

    The target is named by its canonical identity and looked up among loaded
    modules the first time the converter is scored; until the module is
    loaded the converter scores 0. Once resolved, it either walks the type
    itself (minus the ignored members) or hands every call to a backing
    converter.

    Args:
        type_name: Canonical identity of the target type
        ignored_properties: Property names to leave out of the walk
        ignored_fields: Field names to leave out of the walk
        backing: Converter to delegate to once the type resolves

    Raises:
        ValueError: If type_name is empty, or if ignored members are given
            together with a backing converter

    Example:
        registry.add(LazyReflectionConverter(
            "plugins.audio.Mixer",
            ignored_properties=["device_handle"],
        ))

    """

    def __init__(
        self,
        type_name: str,
        ignored_properties: Iterable[str] | None = None,
        ignored_fields: Iterable[str] | None = None,
        backing: ReflectionConverter | None = None,
    ) -> None:
        if not type_name or not type_name.strip():
            msg = "Type name must not be empty"
            raise ValueError(msg)
        if backing is not None and (ignored_properties or ignored_fields):
            msg = "Ignored members cannot be combined with a backing converter"
            raise ValueError(msg)
        super().__init__(
            object,
            ignored_fields=ignored_fields or (),
            ignored_properties=ignored_properties or (),
        )
        self.type_name = type_name.strip()
        self.backing = backing
        self._target = None

    @property
    def target(self) -> type | None:
        if self._target is None:
            resolved = resolve_type(self.type_name)
            if isinstance(resolved, type):
                logger.debug("Resolved lazy converter target %s", self.type_name)
                self._target = resolved
        return self._target

    def serialization_priority(self, t: Any) -> int:
        if self.target is None:
            return 0
        return super().serialization_priority(t)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.type_name!r})"

    # =========================================================================
    # Delegation to the backing converter
    # =========================================================================

    def get_fields(
        self,
        reflector: Reflector,
        t: Any,
        visibility: Visibility = Visibility.PUBLIC,
    ) -> tuple[FieldMember, ...]:
        if self.backing is not None:
            return self.backing.get_fields(reflector, t, visibility)
        return super().get_fields(reflector, t, visibility)

    def get_properties(
        self,
        reflector: Reflector,
        t: Any,
        visibility: Visibility = Visibility.PUBLIC,
    ) -> tuple[PropertyMember, ...]:
        if self.backing is not None:
            return self.backing.get_properties(reflector, t, visibility)
        return super().get_properties(reflector, t, visibility)

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        if self.backing is not None:
            return self.backing.create_instance(reflector, t)
        return super().create_instance(reflector, t)

    def get_default_value(self, reflector: Reflector, t: Any) -> Any:
        if self.backing is not None:
            return self.backing.get_default_value(reflector, t)
        return super().get_default_value(reflector, t)

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
        delegate = self.backing if self.backing is not None else super()
        return delegate.serialize(
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
        delegate = self.backing if self.backing is not None else super()
        return delegate.deserialize(reflector, data, t, depth=depth, logs=logs, context=context)

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
        delegate = self.backing if self.backing is not None else super()
        return delegate.populate(reflector, obj, data, t, visibility=visibility, depth=depth, logs=logs)
