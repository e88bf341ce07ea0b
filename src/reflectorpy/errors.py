"""Named failure conditions raised or recorded by the reflector."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class ReflectorError(Exception):
    """Base class for every failure the reflector reports."""


class TypeNotFound(ReflectorError):
    """A type identity string did not resolve to a type."""

    def __init__(self, identity: str | None) -> None:
        self.identity = identity
        if not identity:
            msg = "Data type is empty."
        else:
            msg = f"Type '{identity}' not found."
        super().__init__(msg)


class NoConverterAvailable(ReflectorError):
    """Every registered converter scored zero for a type."""

    def __init__(self, type_id: str) -> None:
        self.type_id = type_id
        msg = f"Type '{type_id}' not supported. No converter is able to handle it."
        super().__init__(msg)


class UninstantiableType(ReflectorError):
    """An abstract or protocol type was requested with non-null data."""

    def __init__(self, type_id: str, reason: str | None = None) -> None:
        self.type_id = type_id
        self.reason = reason
        msg = f"Unable to create an instance of '{type_id}'."
        if reason:
            msg = f"{msg} {reason}"
        super().__init__(msg)


class MemberNotWritable(ReflectorError):
    """A populate target member is read-only or filtered out."""

    def __init__(
        self,
        member: str,
        type_id: str,
        kind: str = "Property",
        reason: str | None = None,
    ) -> None:
        self.member = member
        self.type_id = type_id
        self.reason = reason
        msg = f"{kind} '{member}' is read-only."
        if reason:
            msg = f"{kind} '{member}' is not writable. {reason}"
        super().__init__(msg)


class MemberNotFound(ReflectorError):
    """A populate target member does not exist on the type."""

    def __init__(
        self,
        member: str,
        type_id: str,
        available: Sequence[str],
        kind: str = "Field",
    ) -> None:
        self.member = member
        self.type_id = type_id
        self.available = tuple(available)
        listed = ", ".join(self.available) if self.available else "<none>"
        msg = (
            f"{kind} '{member}' not found in type '{type_id}'. "
            f"Make sure the name is right, it is case sensitive. "
            f"Available {kind.lower()} names: {listed}"
        )
        super().__init__(msg)


class ArgumentCoercionFailed(ReflectorError):
    """An argument could not be converted to the declared parameter type."""

    def __init__(
        self,
        parameter: str | None,
        value: Any,
        type_id: str,
        reason: str | None = None,
    ) -> None:
        self.parameter = parameter
        self.value = value
        self.type_id = type_id
        self.reason = reason
        msg = f"Unable to convert '{value}' to {type_id}."
        if parameter:
            msg = f"Parameter '{parameter}': {msg}"
        if reason:
            msg = f"{msg} {reason}"
        super().__init__(msg)


class OperationNotFound(ReflectorError):
    """No method matched the discovery query."""

    def __init__(self, query: str) -> None:
        self.query = query
        msg = f"Method not found.\n{query}"
        super().__init__(msg)


class AmbiguousOperation(ReflectorError):
    """Several methods matched and none could be preferred."""

    def __init__(self, candidates: Sequence[str]) -> None:
        self.candidates = tuple(candidates)
        listed = "\n".join(f"  {c}" for c in self.candidates)
        msg = (
            f"Found more than one method ({len(self.candidates)}). "
            f"Specify the type, namespace or parameters to narrow the search.\n"
            f"{listed}"
        )
        super().__init__(msg)


class CycleResolutionFailed(ReflectorError):
    """A reference marker points at a path with no registered object."""

    def __init__(self, path: str) -> None:
        self.path = path
        msg = f"Reference '{path}' does not point at a deserialized object."
        super().__init__(msg)
