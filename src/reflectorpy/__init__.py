"""reflectorpy - Reflective serialization, population and dispatch for Python 3.12+."""

from reflectorpy.cache import (
    LruCache,
    TypeScope,
)
from reflectorpy.codecs import (
    ScalarCodecs,
    plain_value,
)
from reflectorpy.coercion import (
    Int8,
    Int16,
    Int32,
    Int64,
    IntRange,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
    string_to_primitive,
)
from reflectorpy.context import (
    DeserializationContext,
    SerializationContext,
)
from reflectorpy.converters import (
    ArrayReflectionConverter,
    GenericReflectionConverter,
    IgnoreMembersReflectionConverter,
    LazyReflectionConverter,
    MappingReflectionConverter,
    ModuleReflectionConverter,
    PopulateResult,
    PrimitiveReflectionConverter,
    ReflectionConverter,
    TupleReflectionConverter,
    TypeReflectionConverter,
)
from reflectorpy.errors import (
    AmbiguousOperation,
    ArgumentCoercionFailed,
    CycleResolutionFailed,
    MemberNotFound,
    MemberNotWritable,
    NoConverterAvailable,
    OperationNotFound,
    ReflectorError,
    TypeNotFound,
    UninstantiableType,
)
from reflectorpy.formats.json import (
    from_json,
    to_json,
)
from reflectorpy.invoker import (
    MethodCallResult,
    MethodWrapper,
)
from reflectorpy.logs import (
    LogEntry,
    Logs,
    LogType,
)
from reflectorpy.member import (
    SerializedMember,
    as_member,
)
from reflectorpy.members import (
    Description,
    Visibility,
)
from reflectorpy.methods import (
    MethodData,
    MethodRef,
    Parameter,
    compare_names,
)
from reflectorpy.reflector import (
    Reflector,
    ReflectorOptions,
)
from reflectorpy.registry import ConverterRegistry
from reflectorpy.schema import (
    MemberSchema,
    MethodSchema,
    ParameterSchema,
    TypeSchema,
)
from reflectorpy.typeid import (
    Array,
    resolve_type,
    type_id,
)

__all__ = [
    # Errors
    "AmbiguousOperation",
    "ArgumentCoercionFailed",
    # Type identity
    "Array",
    # Converters
    "ArrayReflectionConverter",
    "ConverterRegistry",
    "CycleResolutionFailed",
    "Description",
    "DeserializationContext",
    "GenericReflectionConverter",
    "IgnoreMembersReflectionConverter",
    # Scalars
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "IntRange",
    "LazyReflectionConverter",
    "LogEntry",
    "LogType",
    # Logging
    "Logs",
    # Caches
    "LruCache",
    "MappingReflectionConverter",
    "MemberNotFound",
    "MemberNotWritable",
    # Schemas
    "MemberSchema",
    "MethodCallResult",
    # Operations
    "MethodData",
    "MethodRef",
    "MethodSchema",
    "MethodWrapper",
    "ModuleReflectionConverter",
    "NoConverterAvailable",
    "OperationNotFound",
    "Parameter",
    "ParameterSchema",
    "PopulateResult",
    "PrimitiveReflectionConverter",
    "ReflectionConverter",
    # Facade
    "Reflector",
    "ReflectorError",
    "ReflectorOptions",
    "ScalarCodecs",
    # Serialization
    "SerializationContext",
    "SerializedMember",
    "TupleReflectionConverter",
    "TypeNotFound",
    "TypeReflectionConverter",
    "TypeSchema",
    "TypeScope",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "UninstantiableType",
    "Visibility",
    "as_member",
    "compare_names",
    "from_json",
    "plain_value",
    "resolve_type",
    "string_to_primitive",
    "to_json",
    "type_id",
]
