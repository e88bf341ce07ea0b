"""Invoking discovered operations with serialized or raw arguments."""

from __future__ import annotations

import asyncio
import inspect
import logging
import types
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from reflectorpy.converters import PrimitiveReflectionConverter
from reflectorpy.errors import (
    AmbiguousOperation,
    ArgumentCoercionFailed,
    OperationNotFound,
    ReflectorError,
    UninstantiableType,
)
from reflectorpy.member import SerializedMember, as_member
from reflectorpy.methods import (
    MethodData,
    MethodKind,
    MethodRef,
    Parameter,
    filter_by_parameters,
    find_methods,
    method_data,
)
from reflectorpy.typeid import runtime_class, type_id

if TYPE_CHECKING:
    from reflectorpy.logs import Logs
    from reflectorpy.reflector import Reflector

logger = logging.getLogger(__name__)

type Arguments = Mapping[str, Any] | Sequence[SerializedMember]


@dataclass(frozen=True)
class MethodCallResult:
    """Outcome of ``call_method``: the return value, or the reason it failed."""

    success: bool
    value: Any = None
    error: ReflectorError | None = None
    method: MethodData | None = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failure(cls, error: ReflectorError, method: MethodData | None = None) -> MethodCallResult:
        return cls(success=False, error=error, method=method)


class MethodWrapper:
    """Binds an operation to a target and converts arguments for it.

    Arguments may be ``SerializedMember`` nodes (deserialized with the
    parameter's declared type as fallback) or raw values (coerced the same way
    a scalar payload would be). Missing arguments take the declared default,
    then the type's default value.

    Args:
        reflector: Reflector used for argument conversion and target creation
        method: Operation descriptor or any callable
        target: Instance to call an instance method on; created on first
            call when omitted
        owner: Declaring class, when ``method`` is a plain function
        logs: Optional log sink for argument deserialization

    Example:
        wrapper = MethodWrapper(reflector, Calculator.add)
        wrapper.invoke_dict({"a": "2", "b": 3})  # 5

    """

    def __init__(
        self,
        reflector: Reflector,
        method: MethodData | Callable[..., Any],
        *,
        target: Any = None,
        owner: type | None = None,
        logs: Logs | None = None,
    ) -> None:
        if not isinstance(method, MethodData):
            if target is None and inspect.ismethod(method) and not isinstance(method.__self__, type):
                target = method.__self__
            method = method_data(method, owner)
        self.reflector = reflector
        self.method = method
        self.target = target
        self.logs = logs

    def __repr__(self) -> str:
        return f"MethodWrapper({self.method})"

    # =========================================================================
    # Arguments
    # =========================================================================

    def verify_parameters(self, arguments: Mapping[str, Any] | None = None) -> str | None:
        """Explain why ``arguments`` cannot bind, or return None if they can."""
        if not arguments:
            return None
        parameters = self.method.parameters
        if not parameters:
            return (
                f"Method '{self.method.name}' does not accept any parameters, "
                f"but {len(arguments)} were provided."
            )
        names = {p.name for p in parameters}
        for key in arguments:
            if key not in names:
                return f"Method '{self.method.name}' does not have a parameter named '{key}'."
        return None

    def convert_argument(self, parameter: Parameter, value: Any) -> Any:
        """Convert one supplied argument to the parameter's declared type.

        Raises:
            ArgumentCoercionFailed: If the value cannot be converted

        """
        annotation = parameter.annotation
        fallback = None if annotation is Any else annotation
        if isinstance(value, SerializedMember):
            return self._deserialize(parameter, value, fallback, value.value)
        if value is None or fallback is None or runtime_class(annotation) is None:
            return value
        converter = self.reflector.converters.select(annotation)
        if isinstance(converter, PrimitiveReflectionConverter):
            return converter.convert(value, annotation, parameter.name)
        return self._deserialize(parameter, SerializedMember(value=value), fallback, value)

    def _deserialize(self, parameter: Parameter, member: SerializedMember, fallback: Any, raw: Any) -> Any:
        try:
            return self.reflector.deserialize(
                member,
                fallback_type=fallback,
                fallback_name=parameter.name,
                logs=self.logs,
            )
        except ArgumentCoercionFailed as exc:
            if exc.parameter:
                raise
            raise ArgumentCoercionFailed(parameter.name, exc.value, exc.type_id, exc.reason) from exc
        except ReflectorError as exc:
            raise ArgumentCoercionFailed(
                parameter.name,
                raw,
                type_id(fallback) if fallback is not None else "object",
                str(exc),
            ) from exc

    def build_arguments(self, arguments: Mapping[str, Any] | None = None) -> tuple[list[Any], dict[str, Any]]:
        """Positional and keyword arguments for the underlying call."""
        arguments = arguments or {}
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for parameter in self.method.parameters:
            name = parameter.name or ""
            if name in arguments:
                value = self.convert_argument(parameter, arguments[name])
            elif parameter.has_default:
                value = parameter.default
            else:
                value = self.reflector.get_default_value(parameter.annotation)
            if parameter.kind is inspect.Parameter.KEYWORD_ONLY:
                kwargs[name] = value
            else:
                args.append(value)
        return args, kwargs

    def _named(self, args: Sequence[Any]) -> dict[str, Any]:
        parameters = self.method.parameters
        if len(args) > len(parameters):
            msg = f"Expected at most {len(parameters)} arguments, got {len(args)}."
            raise ArgumentCoercionFailed(None, list(args), str(self.method), msg)
        return {p.name or "": value for p, value in zip(parameters, args, strict=False)}

    def _prepare(self, arguments: Mapping[str, Any] | None) -> tuple[Callable[..., Any], list[Any], dict[str, Any]]:
        problem = self.verify_parameters(arguments)
        if problem is not None:
            raise ArgumentCoercionFailed(None, dict(arguments or {}), str(self.method), problem)
        args, kwargs = self.build_arguments(arguments)
        return self._bound(), args, kwargs

    def _bound(self) -> Callable[..., Any]:
        function = self.method.function
        if self.method.kind is MethodKind.STATIC:
            return function
        if self.method.kind is MethodKind.CLASS:
            return types.MethodType(function, self.method.owner)
        if self.target is None:
            self.target = self.reflector.create_instance(self.method.owner)
        return types.MethodType(function, self.target)

    # =========================================================================
    # Invocation
    # =========================================================================

    def invoke(self, *args: Any) -> Any:
        """Call with positional arguments in declaration order."""
        return self.invoke_dict(self._named(args))

    def invoke_dict(self, arguments: Mapping[str, Any] | None = None) -> Any:
        """Call with arguments by parameter name.

        A coroutine result is run to completion with ``asyncio.run`` when no
        event loop is running in this thread.

        Raises:
            ArgumentCoercionFailed: If an argument is unknown or unconvertible
            RuntimeError: If the operation is asynchronous and an event loop
                is already running

        """
        function, args, kwargs = self._prepare(arguments)
        result = function(*args, **kwargs)
        if not inspect.isawaitable(result):
            return result
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(_await(result))
        if inspect.iscoroutine(result):
            result.close()
        msg = f"Method '{self.method.name}' is asynchronous; use invoke_async inside a running event loop"
        raise RuntimeError(msg)

    async def invoke_async(self, *args: Any) -> Any:
        return await self.invoke_dict_async(self._named(args))

    async def invoke_dict_async(self, arguments: Mapping[str, Any] | None = None) -> Any:
        """Call with arguments by name, awaiting the result if it is awaitable."""
        function, args, kwargs = self._prepare(arguments)
        result = function(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


async def _await(awaitable: Any) -> Any:
    return await awaitable


# =============================================================================
# Discovery plus invocation
# =============================================================================


def _argument_members(arguments: Arguments | None) -> list[SerializedMember]:
    if not arguments:
        return []
    if isinstance(arguments, Mapping):
        members = []
        for key, value in arguments.items():
            member = value if isinstance(value, SerializedMember) else SerializedMember(value=value)
            members.append(SerializedMember(
                name=str(key),
                type_name=member.type_name,
                value=member.value,
                fields=member.fields,
                props=member.props,
            ))
        return members
    return [as_member(a) for a in arguments]


def _select(
    reflector: Reflector,
    filter: MethodRef,
    members: list[SerializedMember],
    **levels: Any,
) -> MethodData:
    candidates = find_methods(reflector, filter, **levels)
    if not candidates:
        raise OperationNotFound(str(filter))
    if len(candidates) == 1:
        return candidates[0]
    method = filter_by_parameters(candidates, members)
    if method is None:
        raise AmbiguousOperation([str(c) for c in candidates])
    logger.debug("Narrowed %d candidates to %s", len(candidates), method)
    return method


def _wrapper(
    reflector: Reflector,
    method: MethodData,
    target: Any,
    logs: Logs | None,
) -> MethodWrapper:
    if method.is_static or target is None:
        return MethodWrapper(reflector, method, logs=logs)
    instance = reflector.deserialize(as_member(target), fallback_type=method.owner, logs=logs)
    if instance is None:
        raise UninstantiableType(type_id(method.owner), "The target deserialized to None.")
    return MethodWrapper(reflector, method, target=instance, logs=logs)


def call_method(
    reflector: Reflector,
    filter: MethodRef,
    known_namespace: bool = False,
    type_name_match_level: int = 1,
    method_name_match_level: int = 1,
    parameters_match_level: int = 0,
    *,
    target: Any = None,
    arguments: Arguments | None = None,
    logs: Logs | None = None,
) -> MethodCallResult:
    """Find exactly one method and invoke it.

    Several candidates are narrowed by the supplied argument names and types.
    Discovery and conversion failures come back as a failed result; anything
    the method itself raises propagates.

    Args:
        reflector: Reflector used for discovery and conversion
        filter: Discovery query
        known_namespace: Require an exact module match
        type_name_match_level: Minimum class name score
        method_name_match_level: Minimum method name score
        parameters_match_level: Minimum parameter list score
        target: Serialized (or raw) instance for an instance method; a fresh
            instance is created when omitted
        arguments: Arguments by name, or a list of named members
        logs: Optional log sink

    Returns:
        The call outcome

    """
    members = _argument_members(arguments)
    method = None
    try:
        method = _select(
            reflector,
            filter,
            members,
            known_namespace=known_namespace,
            type_name_match_level=type_name_match_level,
            method_name_match_level=method_name_match_level,
            parameters_match_level=parameters_match_level,
        )
        wrapper = _wrapper(reflector, method, target, logs)
        value = wrapper.invoke_dict({m.name or "": m for m in members})
    except ReflectorError as exc:
        if logs is not None:
            logs.error(str(exc))
        return MethodCallResult.failure(exc, method)
    return MethodCallResult(success=True, value=value, method=method)


async def call_method_async(
    reflector: Reflector,
    filter: MethodRef,
    known_namespace: bool = False,
    type_name_match_level: int = 1,
    method_name_match_level: int = 1,
    parameters_match_level: int = 0,
    *,
    target: Any = None,
    arguments: Arguments | None = None,
    logs: Logs | None = None,
) -> MethodCallResult:
    """Asynchronous ``call_method``: awaits the result of coroutine methods."""
    members = _argument_members(arguments)
    method = None
    try:
        method = _select(
            reflector,
            filter,
            members,
            known_namespace=known_namespace,
            type_name_match_level=type_name_match_level,
            method_name_match_level=method_name_match_level,
            parameters_match_level=parameters_match_level,
        )
        wrapper = _wrapper(reflector, method, target, logs)
        value = await wrapper.invoke_dict_async({m.name or "": m for m in members})
    except ReflectorError as exc:
        if logs is not None:
            logs.error(str(exc))
        return MethodCallResult.failure(exc, method)
    return MethodCallResult(success=True, value=value, method=method)
