"""Built-in reflection converters."""

from reflectorpy.converters.array import ArrayReflectionConverter
from reflectorpy.converters.base import (
    ENUMERABLE_PRIORITY,
    EXACT_PRIORITY,
    INHERITED_PRIORITY,
    MAX_DEPTH,
    PopulateResult,
    ReflectionConverter,
    type_priority,
)
from reflectorpy.converters.generic import GenericReflectionConverter
from reflectorpy.converters.lazy import LazyReflectionConverter
from reflectorpy.converters.mapping import MappingReflectionConverter
from reflectorpy.converters.opaque import (
    IgnoreMembersReflectionConverter,
    ModuleReflectionConverter,
    TypeReflectionConverter,
)
from reflectorpy.converters.primitive import PrimitiveReflectionConverter
from reflectorpy.converters.tuple import TupleReflectionConverter

__all__ = [
    "ENUMERABLE_PRIORITY",
    "EXACT_PRIORITY",
    "INHERITED_PRIORITY",
    "MAX_DEPTH",
    "ArrayReflectionConverter",
    "GenericReflectionConverter",
    "IgnoreMembersReflectionConverter",
    "LazyReflectionConverter",
    "MappingReflectionConverter",
    "ModuleReflectionConverter",
    "PopulateResult",
    "PrimitiveReflectionConverter",
    "ReflectionConverter",
    "TupleReflectionConverter",
    "TypeReflectionConverter",
    "type_priority",
]
