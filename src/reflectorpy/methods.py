"""Operation descriptors and fuzzy method discovery."""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, get_type_hints

from reflectorpy.members import Visibility, description_of, visibility_of
from reflectorpy.typeid import NESTED_SEPARATOR, is_abstract, type_id

if TYPE_CHECKING:
    from reflectorpy.member import SerializedMember
    from reflectorpy.reflector import Reflector

logger = logging.getLogger(__name__)

# Match levels, strictest first
EXACT_MATCH = 6
IGNORE_CASE_MATCH = 5
PREFIX_MATCH = 4
IGNORE_CASE_PREFIX_MATCH = 3
SUBSTRING_MATCH = 2
IGNORE_CASE_SUBSTRING_MATCH = 1
NO_MATCH = 0

_ARGS_SECTION = re.compile(r"^\s*(Args|Arguments|Parameters):\s*$")
_ARG_LINE = re.compile(r"^\s+(\*{0,2}\w+)(?:\s*\([^)]*\))?:\s*(.+)$")


class MethodKind(Enum):
    """How a discovered function is bound when invoked."""

    INSTANCE = "instance"
    STATIC = "static"
    CLASS = "class"


@dataclass(frozen=True)
class Parameter:
    """A parameter of an operation, or of a discovery query.

    Queries only fill ``name`` and ``type_name``; descriptors built from a
    function also carry the annotation and default used for invocation.
    """

    name: str | None
    type_name: str | None = None
    description: str | None = field(default=None, compare=False)
    has_default: bool = field(default=False, compare=False)
    default: Any = field(default=None, compare=False, repr=False)
    annotation: Any = field(default=Any, compare=False, repr=False)
    kind: inspect._ParameterKind = field(
        default=inspect.Parameter.POSITIONAL_OR_KEYWORD,
        compare=False,
        repr=False,
    )

    def __str__(self) -> str:
        return f"{self.type_name or '?'} {self.name or '?'}"


@dataclass(frozen=True)
class MethodRef:
    """Discovery query: partial namespace, type and method names.

    Example:
        MethodRef(type_name="Calc", method_name="add")
        MethodRef(
            namespace="app.tools",
            type_name="Mixer",
            method_name="set_volume",
            parameters=(Parameter("level", "builtins.int"),),
        )

    """

    method_name: str = ""
    type_name: str = ""
    namespace: str | None = None
    parameters: tuple[Parameter, ...] | None = None

    def __str__(self) -> str:
        owner = ".".join(part for part in (self.namespace, self.type_name) if part)
        params = "" if self.parameters is None else ", ".join(str(p) for p in self.parameters)
        prefix = f"{owner}." if owner else ""
        return f"{prefix}{self.method_name}({params})"


@dataclass(frozen=True)
class MethodData:
    """A discovered callable declared in a class body."""

    owner: type | None
    name: str
    function: Callable[..., Any] = field(compare=False, repr=False)
    kind: MethodKind = MethodKind.INSTANCE
    parameters: tuple[Parameter, ...] = ()
    return_type: Any = field(default=None, compare=False, repr=False)
    description: str | None = field(default=None, compare=False)

    @property
    def is_static(self) -> bool:
        return self.kind is not MethodKind.INSTANCE

    @property
    def is_public(self) -> bool:
        return visibility_of(self.name) is Visibility.PUBLIC

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.function)

    @property
    def namespace(self) -> str | None:
        return self.owner.__module__ if self.owner is not None else self.function.__module__

    @property
    def type_name(self) -> str:
        if self.owner is None:
            return ""
        return self.owner.__qualname__.replace(".", NESTED_SEPARATOR)

    @property
    def declaring_type_name(self) -> str | None:
        return type_id(self.owner) if self.owner is not None else None

    @property
    def return_type_name(self) -> str | None:
        if self.return_type is None or self.return_type is type(None):
            return None
        return type_id(self.return_type)

    def to_ref(self) -> MethodRef:
        return MethodRef(
            method_name=self.name,
            type_name=self.type_name,
            namespace=self.namespace,
            parameters=self.parameters,
        )

    def __str__(self) -> str:
        return str(self.to_ref())


# =============================================================================
# Matching
# =============================================================================


def compare_names(original: str | None, value: str | None) -> int:
    """Score how well ``value`` matches the name ``original`` (0-6).

    6 exact, 5 equal ignoring case, 4 prefix, 3 prefix ignoring case,
    2 substring, 1 substring ignoring case, 0 no match or an empty side.

    Example:
        compare_names("ProcessAll", "Process")  # 4
        compare_names("ProcessAll", "all")      # 1

    """
    if not original or not value:
        return NO_MATCH
    lower_original = original.lower()
    lower_value = value.lower()
    if lower_original == lower_value:
        return EXACT_MATCH if original == value else IGNORE_CASE_MATCH
    if lower_original.startswith(lower_value):
        return PREFIX_MATCH if original.startswith(value) else IGNORE_CASE_PREFIX_MATCH
    if lower_value in lower_original:
        return SUBSTRING_MATCH if value in original else IGNORE_CASE_SUBSTRING_MATCH
    return NO_MATCH


def compare_parameters(
    parameters: Sequence[Parameter],
    refs: Sequence[Parameter] | None,
) -> int:
    """Score a parameter list against a query: 2 identical, 1 same count, 0 otherwise.

    A query parameter without a type name matches any type.
    """
    refs = refs or ()
    if len(parameters) != len(refs):
        return 0
    for parameter, ref in zip(parameters, refs, strict=True):
        if parameter.name != ref.name:
            return 1
        if ref.type_name and parameter.type_name != ref.type_name:
            return 1
    return 2


# =============================================================================
# Descriptors
# =============================================================================


def _docstring_arguments(doc: str | None) -> dict[str, str]:
    """Parameter descriptions from a Google-style ``Args:`` section."""
    if not doc:
        return {}
    found: dict[str, str] = {}
    in_section = False
    for line in doc.splitlines():
        if _ARGS_SECTION.match(line):
            in_section = True
            continue
        if not in_section:
            continue
        if line.strip() and not line.startswith((" ", "\t")):
            break
        if match := _ARG_LINE.match(line):
            found[match[1].lstrip("*")] = match[2].strip()
    return found


def _summary(doc: str | None) -> str | None:
    if not doc:
        return None
    return doc.strip().split("\n\n", 1)[0].replace("\n", " ").strip() or None


def _function_hints(function: Callable[..., Any]) -> dict[str, Any]:
    try:
        return get_type_hints(function, include_extras=True)
    except (NameError, TypeError) as exc:
        logger.debug("Unresolved annotations on %s: %s", getattr(function, "__qualname__", function), exc)
        return {}


def _declaring_class(function: Callable[..., Any]) -> type | None:
    """The class whose body defines ``function``, found through its qualname."""
    parts = getattr(function, "__qualname__", "").split(".")[:-1]
    if not parts or "<locals>" in parts:
        return None
    found: Any = inspect.getmodule(function)
    for part in parts:
        found = getattr(found, part, None)
    return found if isinstance(found, type) else None


def _declared_kind(owner: type, function: Callable[..., Any]) -> MethodKind:
    declared = inspect.getattr_static(owner, function.__name__, None)
    if isinstance(declared, staticmethod):
        return MethodKind.STATIC
    if isinstance(declared, classmethod):
        return MethodKind.CLASS
    return MethodKind.INSTANCE


def method_data(
    function: Callable[..., Any],
    owner: type | None = None,
    kind: MethodKind | None = None,
    name: str | None = None,
) -> MethodData:
    """Describe a function, bound method, staticmethod or classmethod.

    Args:
        function: The callable to describe
        owner: Declaring class (taken from a bound method when omitted)
        kind: Binding kind (inferred when omitted)
        name: Name to report (the function's own name when omitted)

    Returns:
        The operation descriptor

    """
    if isinstance(function, staticmethod):
        function, kind = function.__func__, MethodKind.STATIC
    elif isinstance(function, classmethod):
        function, kind = function.__func__, MethodKind.CLASS
    elif inspect.ismethod(function):
        bound_to = function.__self__
        if isinstance(bound_to, type):
            owner, kind = owner or bound_to, MethodKind.CLASS
        else:
            owner, kind = owner or type(bound_to), MethodKind.INSTANCE
        function = function.__func__
    if kind is None:
        owner = owner or _declaring_class(function)
        kind = _declared_kind(owner, function) if owner is not None else MethodKind.STATIC

    signature = inspect.signature(function)
    hints = _function_hints(function)
    doc = inspect.getdoc(function)
    documented = _docstring_arguments(doc)

    params = list(signature.parameters.values())
    if kind is not MethodKind.STATIC and params:
        params = params[1:]

    parameters = []
    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, Any)
        has_default = param.default is not inspect.Parameter.empty
        parameters.append(
            Parameter(
                name=param.name,
                type_name=type_id(annotation) if annotation is not Any else None,
                description=description_of(annotation) or documented.get(param.name),
                has_default=has_default,
                default=param.default if has_default else None,
                annotation=annotation,
                kind=param.kind,
            ),
        )

    return MethodData(
        owner=owner,
        name=name or function.__name__,
        function=function,
        kind=kind,
        parameters=tuple(parameters),
        return_type=hints.get("return"),
        description=_summary(doc),
    )


def declared_methods(cls: type, visibility: Visibility = Visibility.PUBLIC) -> tuple[MethodData, ...]:
    """Functions, staticmethods and classmethods declared directly on ``cls``."""
    found = []
    for name, attr in vars(cls).items():
        if name.startswith("__") or visibility_of(name) not in visibility:
            continue
        if isinstance(attr, staticmethod):
            kind = MethodKind.STATIC
        elif isinstance(attr, classmethod):
            kind = MethodKind.CLASS
        elif inspect.isfunction(attr):
            kind = MethodKind.INSTANCE
        else:
            continue
        try:
            found.append(method_data(attr, cls, kind, name))
        except (TypeError, ValueError) as exc:
            logger.debug("Skipping %s.%s: %s", cls.__qualname__, name, exc)
    return tuple(found)


# =============================================================================
# Discovery
# =============================================================================


def _type_match(cls: type, query: str) -> int:
    qualname = cls.__qualname__.replace(".", NESTED_SEPARATOR)
    return max(compare_names(cls.__name__, query), compare_names(qualname, query))


def find_methods(
    reflector: Reflector,
    filter: MethodRef,
    known_namespace: bool = False,
    type_name_match_level: int = 1,
    method_name_match_level: int = 1,
    parameters_match_level: int = 0,
) -> list[MethodData]:
    """Find methods in the reflector's scope that match a query.

    Each match level is a minimum score from ``compare_names`` (0 accepts any
    name, 6 requires an exact, case-sensitive match). Only concrete public
    classes are searched, and only methods they declare themselves.

    Args:
        reflector: Reflector whose type scope is searched
        filter: The query
        known_namespace: Require the declaring module to equal ``filter.namespace``
        type_name_match_level: Minimum score for the declaring class name
        method_name_match_level: Minimum score for the method name
        parameters_match_level: Minimum ``compare_parameters`` score

    Returns:
        Matching methods, best matches first

    Example:
        find_methods(reflector, MethodRef(method_name="Process"), method_name_match_level=6)

    """
    namespace = (filter.namespace or "").strip() or None
    scored: list[tuple[int, MethodData]] = []
    for cls in reflector.types.all_types():
        if cls.__name__.startswith("_") or is_abstract(cls):
            continue
        if known_namespace and cls.__module__ != namespace:
            continue
        type_level = 0
        if type_name_match_level > 0 and filter.type_name:
            type_level = _type_match(cls, filter.type_name)
            if type_level < type_name_match_level:
                continue
        for method in reflector.declared_methods(cls):
            method_level = 0
            if method_name_match_level > 0 and filter.method_name:
                method_level = compare_names(method.name, filter.method_name)
                if method_level < method_name_match_level:
                    continue
            parameters_level = 0
            if parameters_match_level > 0:
                parameters_level = compare_parameters(method.parameters, filter.parameters)
                if parameters_level < parameters_match_level:
                    continue
            scored.append((parameters_level + method_level + type_level, method))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [method for _, method in scored]


def filter_by_parameters(
    methods: Iterable[MethodData],
    arguments: Sequence[SerializedMember] | None = None,
) -> MethodData | None:
    """First method the supplied arguments can bind to.

    Every argument must name a parameter (and match its type when the
    argument carries a type name); every parameter without a default must be
    supplied.
    """
    arguments = arguments or ()
    supplied = {a.name: a for a in arguments if a.name}
    for method in methods:
        names = {p.name for p in method.parameters}
        if any(name not in names for name in supplied):
            continue
        if len(supplied) != len(arguments):
            continue
        compatible = True
        for parameter in method.parameters:
            argument = supplied.get(parameter.name or "")
            if argument is None:
                if not parameter.has_default:
                    compatible = False
                    break
                continue
            if argument.type_name and parameter.type_name and argument.type_name != parameter.type_name:
                compatible = False
                break
        if compatible:
            return method
    return None
