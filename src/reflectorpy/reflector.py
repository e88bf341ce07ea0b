"""The reflector facade: serialize, deserialize, populate, compare and invoke."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence, Set
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, get_origin

from reflectorpy.cache import DEFAULT_CAPACITY, LruCache, TypeScope
from reflectorpy.codecs import ScalarCodecs
from reflectorpy.context import DeserializationContext, SerializationContext
from reflectorpy.converters import PopulateResult
from reflectorpy.errors import (
    CycleResolutionFailed,
    NoConverterAvailable,
    TypeNotFound,
)
from reflectorpy.invoker import MethodCallResult, MethodWrapper, call_method, call_method_async
from reflectorpy.member import SerializedMember, as_member
from reflectorpy.members import MetadataCache, Visibility, instance_fields
from reflectorpy.methods import MethodData, MethodRef, declared_methods, find_methods, method_data
from reflectorpy.registry import ConverterRegistry
from reflectorpy.schema import MethodSchema, TypeSchema, method_schema, type_schema
from reflectorpy.typeid import (
    Array,
    is_nullable,
    is_primitive,
    resolve_type,
    runtime_class,
    type_id,
    unwrap_optional,
)

if TYPE_CHECKING:
    from reflectorpy.converters import ReflectionConverter
    from reflectorpy.invoker import Arguments
    from reflectorpy.logs import Logs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReflectorOptions:
    """Configuration for a ``Reflector``.

    Attributes:
        cache_capacity: Maximum entries in each metadata cache
        visibility: Default member visibility for serialize and populate
        modules: Module names types are resolved and methods discovered in;
            None means every loaded module

    """

    cache_capacity: int = DEFAULT_CAPACITY
    visibility: Visibility = Visibility.PUBLIC
    modules: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.cache_capacity < 1:
            msg = f"cache_capacity must be at least 1, got {self.cache_capacity}"
            raise ValueError(msg)
        if self.modules is not None and not isinstance(self.modules, tuple):
            object.__setattr__(self, "modules", tuple(self.modules))


def _effective_type(obj: Any, fallback_type: Any) -> Any:
    """The declared type when it describes obj more precisely than ``type(obj)``."""
    if fallback_type is None:
        return type(obj)
    declared = unwrap_optional(fallback_type)
    if runtime_class(declared) is type(obj) and (isinstance(declared, Array) or get_origin(declared) is not None):
        return declared
    return type(obj)


def _is_untyped(t: Any) -> bool:
    return t is None or t is Any or t is object


class Reflector:
    """Entry point tying the converter registry to the traversal operations.

    Every reflector owns its registry, codecs and caches; two reflectors never
    share state. Registration is expected during setup; the read paths are
    safe to use from several threads afterwards.

    Example:
        reflector = Reflector()
        data = reflector.serialize(order)
        copy = reflector.deserialize(data)
        reflector.populate(order, patch, logs=logs)

    """

    def __init__(
        self,
        options: ReflectorOptions | None = None,
        *,
        converters: ConverterRegistry | None = None,
        codecs: ScalarCodecs | None = None,
    ) -> None:
        self.options = options or ReflectorOptions()
        self.codecs = codecs if codecs is not None else ScalarCodecs()
        self.metadata = MetadataCache(self.options.cache_capacity)
        self.types = TypeScope(self.options.modules)
        self.converters = converters if converters is not None else ConverterRegistry.default(self.codecs)
        self._methods: LruCache[tuple[type, Visibility], tuple[MethodData, ...]] = LruCache(
            self.options.cache_capacity,
        )

    def __repr__(self) -> str:
        return f"Reflector(converters={len(self.converters)}, modules={self.options.modules})"

    # =========================================================================
    # Types
    # =========================================================================

    def type_id(self, t: Any) -> str:
        return type_id(t)

    def resolve_type(self, identity: str | None) -> Any | None:
        """Resolve an identity within this reflector's module scope."""
        return resolve_type(identity, self.types)

    def get_converter(self, t: Any) -> ReflectionConverter | None:
        return self.converters.select(t)

    def _require_converter(self, t: Any) -> ReflectionConverter:
        converter = self.converters.select(t)
        if converter is None:
            raise NoConverterAvailable(type_id(t))
        return converter

    def create_instance(self, t: Any) -> Any:
        """Create an empty instance of ``t`` with its best converter.

        Raises:
            NoConverterAvailable: If no converter handles ``t``
            UninstantiableType: If ``t`` cannot be constructed

        """
        return self._require_converter(t).create_instance(self, t)

    def get_default_value(self, t: Any) -> Any:
        """Default for a declared type: None for optionals and reference types."""
        if _is_untyped(t) or is_nullable(t):
            return None
        converter = self.converters.select(t)
        if converter is None:
            return None
        return converter.get_default_value(self, t)

    # =========================================================================
    # Serialize
    # =========================================================================

    def serialize(
        self,
        obj: Any,
        fallback_type: Any = None,
        name: str | None = None,
        *,
        recursive: bool = True,
        visibility: Visibility | None = None,
        depth: int = 0,
        logs: Logs | None = None,
        context: SerializationContext | None = None,
    ) -> SerializedMember:
        """Serialize an object graph into a ``SerializedMember`` tree.

        Args:
            obj: The value to serialize (None produces a null member)
            fallback_type: Declared type, used for None and to keep generic
                arguments the runtime class does not carry
            name: Member name of the produced node
            recursive: Walk members; False emits a single value token
            visibility: Member visibility (the configured default when None)
            depth: Nesting depth for log indentation
            logs: Optional log sink
            context: Cycle tracking state, created for the root call

        Returns:
            The serialized tree; a node met again below itself becomes a
            ``$ref`` marker holding the path of its first occurrence

        Raises:
            NoConverterAvailable: If no converter handles a reachable type

        """
        if obj is None:
            return SerializedMember.null(fallback_type, name)
        visibility = visibility if visibility is not None else self.options.visibility
        context = context if context is not None else SerializationContext()
        t = _effective_type(obj, fallback_type)

        if self.converters.is_blacklisted(t):
            if logs is not None:
                logs.debug(f"Skipping blacklisted type '{type_id(t)}'.", depth)
            return SerializedMember.null(t, name)
        converter = self._require_converter(t)

        context.enter(name)
        registered = False
        try:
            if not is_primitive(t) and not isinstance(obj, type):
                if not context.try_register(obj):
                    path = context.path_of(obj)
                    if logs is not None:
                        logs.debug(f"Cycle detected, referencing '{path}'.", depth)
                    return SerializedMember.reference(path, name)
                registered = True
            return converter.serialize(
                self,
                obj,
                t,
                name,
                recursive=recursive,
                visibility=visibility,
                depth=depth,
                logs=logs,
                context=context,
            )
        finally:
            if registered:
                context.unregister(obj)
            context.exit(name)

    # =========================================================================
    # Deserialize
    # =========================================================================

    def deserialize(
        self,
        data: SerializedMember | Mapping[str, Any] | Any,
        fallback_type: Any = None,
        fallback_name: str | None = None,
        *,
        depth: int = 0,
        logs: Logs | None = None,
        context: DeserializationContext | None = None,
    ) -> Any:
        """Materialize a ``SerializedMember`` tree (or its wire dict).

        The member's own ``type_name`` wins over ``fallback_type``. Reference
        markers resolve to objects already built earlier in the same call.

        Raises:
            TypeNotFound: If the type name does not resolve, or the data has
                members but no type is known
            NoConverterAvailable: If no converter handles the type
            CycleResolutionFailed: If a reference points at an unknown path
            UninstantiableType: If the type cannot be constructed
            ArgumentCoercionFailed: If a scalar does not fit its type

        """
        member = as_member(data)
        context = context if context is not None else DeserializationContext()

        if member.is_reference:
            path = member.reference_path or ""
            found, obj = context.resolve(path)
            if not found:
                raise CycleResolutionFailed(path)
            return obj
        if member.is_null:
            return None

        t = fallback_type
        if member.type_name:
            t = self.resolve_type(member.type_name)
            if t is None:
                raise TypeNotFound(member.type_name)
        if _is_untyped(t):
            if not member.has_members:
                return member.value
            raise TypeNotFound(member.type_name)
        if self.converters.is_blacklisted(t):
            if logs is not None:
                logs.debug(f"Skipping blacklisted type '{type_id(t)}'.", depth)
            return None

        converter = self._require_converter(t)
        name = member.name or fallback_name
        context.enter(name)
        try:
            return converter.deserialize(self, member, t, depth=depth, logs=logs, context=context)
        finally:
            context.exit(name)

    # =========================================================================
    # Populate
    # =========================================================================

    def populate(
        self,
        obj: Any,
        data: SerializedMember | Mapping[str, Any] | Any,
        fallback_type: Any = None,
        *,
        visibility: Visibility | None = None,
        depth: int = 0,
        logs: Logs | None = None,
    ) -> PopulateResult:
        """Apply serialized data to an existing object, member by member.

        Failures are logged (when ``logs`` is given) rather than raised, and
        the walk continues over the remaining members.

        Returns:
            Success flag and the populated value; immutable values come back
            as a new object

        """
        member = as_member(data)
        visibility = visibility if visibility is not None else self.options.visibility

        if member.is_reference:
            _error(logs, f"Reference '{member.reference_path}' cannot be used to populate.", depth)
            return PopulateResult(False, obj)
        if member.is_null:
            return PopulateResult(True, None)

        t = fallback_type if fallback_type is not None else (type(obj) if obj is not None else None)
        if member.type_name:
            t = self.resolve_type(member.type_name)
            if t is None:
                _error(logs, str(TypeNotFound(member.type_name)), depth)
                return PopulateResult(False, obj)

        if _is_untyped(t):
            if obj is None and not member.has_members:
                return PopulateResult(True, member.value)
            if obj is None:
                _error(logs, str(TypeNotFound(member.type_name)), depth)
                return PopulateResult(False, obj)
            t = type(obj)

        converter = self.converters.select(t)
        if converter is None:
            _error(logs, str(NoConverterAvailable(type_id(t))), depth)
            return PopulateResult(False, obj)
        return converter.populate(self, obj, member, t, visibility=visibility, depth=depth, logs=logs)

    # =========================================================================
    # Structural equality
    # =========================================================================

    def are_equal(self, a: Any, b: Any, visibility: Visibility | None = None) -> bool:
        """Structural comparison walking the same members serialize would.

        Cycles are handled: a pair of objects already being compared is
        treated as equal.
        """
        visibility = visibility if visibility is not None else self.options.visibility
        return self._equal(a, b, visibility, set())

    def _equal(self, a: Any, b: Any, visibility: Visibility, active: set[tuple[int, int]]) -> bool:
        if a is b:
            return True
        if a is None or b is None:
            return False
        if is_primitive(type(a)) or is_primitive(type(b)) or isinstance(a, type):
            return bool(a == b)
        key = (id(a), id(b))
        if key in active:
            return True
        active.add(key)
        try:
            return self._equal_structure(a, b, visibility, active)
        finally:
            active.discard(key)

    def _equal_structure(self, a: Any, b: Any, visibility: Visibility, active: set[tuple[int, int]]) -> bool:
        if isinstance(a, Mapping) and isinstance(b, Mapping):
            if a.keys() != b.keys():
                return False
            return all(self._equal(a[k], b[k], visibility, active) for k in a)
        if isinstance(a, Set) and isinstance(b, Set):
            return a == b
        if type(a) is not type(b):
            return False
        if isinstance(a, Sequence):
            if len(a) != len(b):
                return False
            return all(self._equal(x, y, visibility, active) for x, y in zip(a, b, strict=True))
        members = self.metadata.get_members(type(a), visibility)
        declared = {f.name for f in self.metadata.get_members(type(a), Visibility.ALL).fields}
        extra = {
            f.name: f
            for obj in (a, b)
            for f in instance_fields(obj, declared, visibility)
        }
        for field in (*members.fields, *extra.values()):
            if not self._equal(field.get(a), field.get(b), visibility, active):
                return False
        for prop in members.properties:
            try:
                left, right = prop.get(a), prop.get(b)
            except Exception as exc:  # serialize skips raising getters too
                logger.debug("Skipping property %s in comparison: %s", prop.name, exc)
                continue
            if not self._equal(left, right, visibility, active):
                return False
        return True

    # =========================================================================
    # Schemas
    # =========================================================================

    def get_schema(self, t: Any) -> TypeSchema:
        return type_schema(self, t)

    def get_method_schema(self, method: MethodData | Callable[..., Any]) -> MethodSchema:
        if not isinstance(method, MethodData):
            method = method_data(method)
        return method_schema(self, method)

    # =========================================================================
    # Operations
    # =========================================================================

    def declared_methods(self, cls: type) -> tuple[MethodData, ...]:
        """Methods declared on ``cls`` itself, memoized per class."""
        visibility = self.options.visibility
        return self._methods.get_or_add((cls, visibility), lambda key: declared_methods(*key))

    def find_methods(
        self,
        filter: MethodRef,
        known_namespace: bool = False,
        type_name_match_level: int = 1,
        method_name_match_level: int = 1,
        parameters_match_level: int = 0,
    ) -> list[MethodData]:
        return find_methods(
            self,
            filter,
            known_namespace,
            type_name_match_level,
            method_name_match_level,
            parameters_match_level,
        )

    def call_method(
        self,
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
        return call_method(
            self,
            filter,
            known_namespace,
            type_name_match_level,
            method_name_match_level,
            parameters_match_level,
            target=target,
            arguments=arguments,
            logs=logs,
        )

    async def call_method_async(
        self,
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
        return await call_method_async(
            self,
            filter,
            known_namespace,
            type_name_match_level,
            method_name_match_level,
            parameters_match_level,
            target=target,
            arguments=arguments,
            logs=logs,
        )

    def wrap(self, method: MethodData | Any, *, target: Any = None, logs: Logs | None = None) -> MethodWrapper:
        """A ``MethodWrapper`` bound to this reflector."""
        return MethodWrapper(self, method, target=target, logs=logs)

    def clear_caches(self) -> None:
        self.metadata.clear()
        self.types.clear()
        self._methods.clear()


def _error(logs: Logs | None, message: str, depth: int) -> None:
    if logs is not None:
        logs.error(message, depth)
    else:
        logger.debug("%s", message)
