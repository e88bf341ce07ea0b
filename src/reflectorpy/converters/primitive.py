"""Scalar converter: numbers, text, enums and codec-backed values."""

from __future__ import annotations

import binascii
from datetime import timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from reflectorpy.codecs import ScalarCodecs, plain_value
from reflectorpy.coercion import can_parse, check_range, string_to_primitive
from reflectorpy.converters.base import EXACT_PRIORITY, MAX_DEPTH, ReflectionConverter
from reflectorpy.errors import ArgumentCoercionFailed
from reflectorpy.typeid import (
    PRIMITIVE_TYPES,
    runtime_class,
    type_id,
    type_short_name,
    unwrap_optional,
)

if TYPE_CHECKING:
    from reflectorpy.context import DeserializationContext
    from reflectorpy.logs import Logs
    from reflectorpy.member import SerializedMember
    from reflectorpy.reflector import Reflector

_ZERO_DEFAULTS: tuple[type, ...] = (bool, int, float, complex, Decimal, timedelta)


class PrimitiveReflectionConverter(ReflectionConverter):
    """Serializes scalars as a single value token.

    Handles ``bool``, numbers, ``str``, enums (by member name) and every type
    with a codec in the reflector's ``ScalarCodecs``. Incoming values are
    coerced: JSON numbers widen or narrow when lossless, text goes through
    ``string_to_primitive``.
    """

    allow_cascade_serialization: bool = False
    allow_cascade_fields: bool = False
    allow_cascade_properties: bool = False

    def __init__(self, codecs: ScalarCodecs | None = None) -> None:
        super().__init__()
        self.codecs = codecs if codecs is not None else ScalarCodecs()

    def serialization_priority(self, t: Any) -> int:
        t = unwrap_optional(t)
        if not isinstance(t, type):
            return 0
        for distance, base in enumerate(t.__mro__):
            if base in PRIMITIVE_TYPES or self.codecs.get(base) is not None:
                return EXACT_PRIORITY if distance == 0 else MAX_DEPTH - distance
        return 0

    def serialize_value(self, reflector: Reflector, obj: Any) -> Any:
        return plain_value(obj, self.codecs)

    def get_default_value(self, reflector: Reflector, t: Any) -> Any:
        cls = runtime_class(t)
        if cls is None:
            return None
        if issubclass(cls, Enum):
            return next(iter(cls), None)
        if issubclass(cls, _ZERO_DEFAULTS):
            return cls()
        return None

    def create_instance(self, reflector: Reflector, t: Any) -> Any:
        return self.get_default_value(reflector, t)

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
        return self.convert(data.value, t)

    def set_value(
        self,
        reflector: Reflector,
        obj: Any,
        data: SerializedMember,
        t: Any,
        *,
        visibility: Any = None,
        depth: int = 0,
        logs: Logs | None = None,
    ) -> tuple[bool, Any]:
        try:
            value = self.convert(data.value, t)
        except ArgumentCoercionFailed as exc:
            if logs is not None:
                logs.error(str(exc), depth)
            return False, obj
        return True, value

    def convert(self, value: Any, t: Any, parameter: str | None = None) -> Any:
        """Coerce a JSON-compatible value to the scalar type ``t``.

        Raises:
            ArgumentCoercionFailed: If value cannot represent a ``t``

        """
        cls = runtime_class(t)
        if cls is None or value is None:
            return value

        if cls is bool:
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                return string_to_primitive(value, t, parameter)
            raise self._mismatch(value, t, parameter)

        if cls is int:
            if isinstance(value, bool):
                raise self._mismatch(value, t, parameter)
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            if isinstance(value, int):
                return check_range(value, t, parameter)
            if isinstance(value, str):
                return string_to_primitive(value, t, parameter)
            raise self._mismatch(value, t, parameter)

        if issubclass(cls, Enum):
            if isinstance(value, cls):
                return value
            if isinstance(value, str):
                return string_to_primitive(value, t, parameter)
            try:
                return cls(value)
            except ValueError as exc:
                raise ArgumentCoercionFailed(parameter, value, type_id(t), str(exc)) from exc

        if isinstance(value, cls):
            return value
        if cls is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str) and can_parse(cls):
            return string_to_primitive(value, t, parameter)

        codec = self.codecs.lookup(cls)
        if codec is not None:
            _, _, decode = codec
            try:
                return decode(value)
            except (ValueError, TypeError, ArithmeticError, binascii.Error) as exc:
                raise ArgumentCoercionFailed(parameter, value, type_id(t), str(exc) or None) from exc
        raise self._mismatch(value, t, parameter)

    @staticmethod
    def _mismatch(value: Any, t: Any, parameter: str | None) -> ArgumentCoercionFailed:
        return ArgumentCoercionFailed(
            parameter,
            value,
            type_id(t),
            f"Expected a value of type '{type_short_name(t)}', got '{type(value).__name__}'.",
        )
