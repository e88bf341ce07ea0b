"""Text to scalar coercion for loosely typed invocation arguments."""

from __future__ import annotations

import base64
import binascii
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum, Flag
from pathlib import Path, PurePath
from typing import Annotated, Any
from uuid import UUID

from reflectorpy.errors import ArgumentCoercionFailed
from reflectorpy.typeid import annotated_metadata, runtime_class, type_id, unwrap_optional


@dataclass(frozen=True)
class IntRange:
    """Inclusive bounds for an integer annotation.

    Python integers are unbounded, so fixed-width semantics are declared with
    ``Annotated[int, IntRange(lo, hi)]``. Coercion rejects values outside the
    range instead of wrapping them.

    Example:
        def set_volume(level: Annotated[int, IntRange(0, 100)]) -> None: ...

    """

    min: int
    max: int

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and self.min <= value <= self.max

    def __str__(self) -> str:
        return f"[{self.min}, {self.max}]"


type Int8 = Annotated[int, IntRange(-(2**7), 2**7 - 1)]
type Int16 = Annotated[int, IntRange(-(2**15), 2**15 - 1)]
type Int32 = Annotated[int, IntRange(-(2**31), 2**31 - 1)]
type Int64 = Annotated[int, IntRange(-(2**63), 2**63 - 1)]
type UInt8 = Annotated[int, IntRange(0, 2**8 - 1)]
type UInt16 = Annotated[int, IntRange(0, 2**16 - 1)]
type UInt32 = Annotated[int, IntRange(0, 2**32 - 1)]
type UInt64 = Annotated[int, IntRange(0, 2**64 - 1)]

_TRUE = "true"
_FALSE = "false"
_NON_FINITE = ("inf", "infinity", "nan")
FLAG_SEPARATOR = "|"

# [d.]hh:mm:ss[.fraction]
_TIMESPAN = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2}):(?P<seconds>\d{1,2}(?:\.\d+)?)$",
)


def int_range(t: Any) -> IntRange | None:
    """Bounds declared on an integer annotation, if any."""
    for meta in annotated_metadata(t):
        if isinstance(meta, IntRange):
            return meta
    return None


def check_range(value: int, t: Any, parameter: str | None = None) -> int:
    """Return value unchanged, or raise if it falls outside declared bounds.

    Raises:
        ArgumentCoercionFailed: If the annotation carries an ``IntRange`` that
            does not contain value

    """
    bounds = int_range(t)
    if bounds is not None and value not in bounds:
        raise ArgumentCoercionFailed(
            parameter,
            value,
            type_id(t),
            f"Value is outside the range {bounds}.",
        )
    return value


def parse_timedelta(text: str) -> timedelta:
    """Parse seconds (``"90"``, ``"1.5"``) or ``[d.]hh:mm:ss[.f]`` text.

    Raises:
        ValueError: If text matches neither form

    """
    text = text.strip()
    match = _TIMESPAN.match(text)
    if match is None:
        return timedelta(seconds=float(text))
    span = timedelta(
        days=int(match["days"] or 0),
        hours=int(match["hours"]),
        minutes=int(match["minutes"]),
        seconds=float(match["seconds"]),
    )
    return -span if match["sign"] else span


def _enum_member(text: str, cls: type[Enum]) -> Enum:
    token = text.strip()
    # composite flags are written as "READ|WRITE"
    if issubclass(cls, Flag) and FLAG_SEPARATOR in token:
        combined = cls(0)
        for part in token.split(FLAG_SEPARATOR):
            combined |= _enum_member(part, cls)
        return combined
    named = cls.__members__
    if token in named:
        return named[token]
    lowered = token.lower()
    for name, member in named.items():
        if name.lower() == lowered:
            return member
    for member in cls:
        if str(member.value).lower() == lowered:
            return member
    names = ", ".join(m.name for m in cls)
    msg = f"Valid values: {names}."
    raise ValueError(msg)


def _parse_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value) and text.strip().lstrip("+-").lower() not in _NON_FINITE:
        msg = "Value is outside the range of a float."
        raise ValueError(msg)
    return value


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered == _TRUE:
        return True
    if lowered == _FALSE:
        return False
    msg = "Expected 'true' or 'false'."
    raise ValueError(msg)


def _parse_path(text: str, cls: type) -> PurePath:
    return Path(text) if cls is PurePath else cls(text)


_PARSERS: dict[type, Any] = {
    bool: _parse_bool,
    int: lambda s: int(s.strip()),
    float: _parse_float,
    complex: lambda s: complex(s.strip().replace(" ", "")),
    Decimal: lambda s: Decimal(s.strip()),
    datetime: lambda s: datetime.fromisoformat(s.strip()),
    date: lambda s: date.fromisoformat(s.strip()),
    time: lambda s: time.fromisoformat(s.strip()),
    timedelta: parse_timedelta,
    UUID: lambda s: UUID(s.strip()),
    bytes: lambda s: base64.b64decode(s.strip(), validate=True),
    bytearray: lambda s: bytearray(base64.b64decode(s.strip(), validate=True)),
}


def can_parse(t: Any) -> bool:
    """True if ``string_to_primitive`` has a conversion for t."""
    cls = runtime_class(t)
    if cls is None or unwrap_optional(t) is Any or cls is object or cls is str:
        return True
    return cls in _PARSERS or issubclass(cls, Enum | PurePath)


def string_to_primitive(text: str, t: Any, parameter: str | None = None) -> Any:
    """Convert a text token to a scalar of type ``t``.

    Booleans accept ``true``/``false`` in any case; enums match member names
    case-insensitively and also accept member values. Integers declared with
    ``IntRange`` bounds (``Int32`` and friends) are range-checked. Text for
    ``str`` (and ``Any``) is returned as-is.

    Args:
        text: The token to convert
        t: Target type descriptor
        parameter: Parameter name reported on failure

    Returns:
        The converted value

    Raises:
        ArgumentCoercionFailed: If text is empty, malformed or out of range,
            or no conversion exists for ``t``

    Example:
        string_to_primitive("TRUE", bool)   # True
        string_to_primitive("1:30:00", timedelta)  # timedelta(hours=1, minutes=30)
        string_to_primitive("300", Int8)    # raises ArgumentCoercionFailed

    """
    cls = runtime_class(t)
    if cls is str or cls is object or unwrap_optional(t) is Any:
        return text
    if text is None or not str(text).strip():
        raise ArgumentCoercionFailed(parameter, text, type_id(t), "Value is empty.")
    if cls is None:
        raise ArgumentCoercionFailed(parameter, text, type_id(t), "Target is not a class.")

    try:
        if issubclass(cls, Enum):
            return _enum_member(text, cls)
        if issubclass(cls, PurePath):
            return _parse_path(text, cls)
        parser = _PARSERS.get(cls)
        if parser is None:
            raise ArgumentCoercionFailed(
                parameter,
                text,
                type_id(t),
                "No conversion from text is available for this type.",
            )
        value = parser(text)
    except (ValueError, InvalidOperation, OverflowError, binascii.Error) as exc:
        reason = str(exc) or None
        raise ArgumentCoercionFailed(parameter, text, type_id(t), reason) from exc

    if cls is int:
        check_range(value, t, parameter)
    return value
