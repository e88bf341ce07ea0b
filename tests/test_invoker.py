"""Tests for MethodWrapper argument handling and call_method dispatch."""

from __future__ import annotations

import asyncio

import pytest

from reflectorpy import (
    AmbiguousOperation,
    ArgumentCoercionFailed,
    Logs,
    MethodRef,
    MethodWrapper,
    OperationNotFound,
    Reflector,
    ReflectorOptions,
    SerializedMember,
)
from tests.models import Calculator, Person, Processor


def scoped() -> Reflector:
    return Reflector(ReflectorOptions(modules=("tests.models",)))


class TestArguments:
    """Verification and conversion of supplied arguments."""

    def test_text_is_coerced(self) -> None:
        wrapper = MethodWrapper(scoped(), Processor.process)

        assert wrapper.invoke_dict({"value": "2"}) == 4
        assert wrapper.target.calls == 1

    def test_raw_object_argument(self) -> None:
        wrapper = MethodWrapper(scoped(), Calculator.shift)

        result = wrapper.invoke_dict({"person": {"id": 1, "name": "Ann"}, "amount": "2"})

        assert result == Person(id=3, name="Ann")

    def test_serialized_argument(self) -> None:
        reflector = scoped()
        wrapper = MethodWrapper(reflector, Calculator.shift)

        result = wrapper.invoke_dict({"person": reflector.serialize(Person(id=5))})

        assert result.id == 6

    def test_enum_argument(self) -> None:
        assert MethodWrapper(scoped(), Calculator.tint).invoke("Green") == "green"

    def test_declared_default(self) -> None:
        assert MethodWrapper(scoped(), Processor.add).invoke_dict({"a": 1}) == 11

    def test_type_default_for_missing_argument(self) -> None:
        assert MethodWrapper(scoped(), Calculator.scale).invoke_dict() == 0.0

    def test_verify_parameters(self) -> None:
        reflector = scoped()
        add = MethodWrapper(reflector, Processor.add)
        describe = MethodWrapper(reflector, Processor.describe)

        assert add.verify_parameters({"a": 1}) is None
        assert add.verify_parameters({"x": 1}) == "Method 'add' does not have a parameter named 'x'."
        assert describe.verify_parameters({"x": 1}) == (
            "Method 'describe' does not accept any parameters, but 1 were provided."
        )

    def test_unknown_parameter(self) -> None:
        with pytest.raises(ArgumentCoercionFailed, match="does not have a parameter named 'x'"):
            MethodWrapper(scoped(), Processor.add).invoke_dict({"x": 1})

    def test_too_many_arguments(self) -> None:
        with pytest.raises(ArgumentCoercionFailed, match="Expected at most 2 arguments, got 3."):
            MethodWrapper(scoped(), Processor.add).invoke(1, 2, 3)

    @pytest.mark.parametrize(
        ("method", "arguments", "parameter"),
        [
            (Calculator.scale_count, {"count": "3000000000"}, "count"),
            (Calculator.tint, {"color": "purple"}, "color"),
            (Processor.add, {"a": "two"}, "a"),
            (Processor.add, {"a": SerializedMember(value="two")}, "a"),
        ],
    )
    def test_coercion_failure_names_parameter(self, method: object, arguments: dict, parameter: str) -> None:
        with pytest.raises(ArgumentCoercionFailed) as info:
            MethodWrapper(scoped(), method).invoke_dict(arguments)
        assert info.value.parameter == parameter


class TestInvocation:
    """Binding and calling."""

    def test_bound_method_keeps_its_instance(self) -> None:
        processor = Processor()
        wrapper = MethodWrapper(scoped(), processor.process)

        assert wrapper.invoke(3) == 6
        assert processor.calls == 1

    def test_explicit_target(self) -> None:
        wrapper = MethodWrapper(scoped(), Calculator.scale, target=Calculator())
        wrapper.target.offset = 1
        assert wrapper.invoke(2.0, 3.0) == 7.0

    def test_class_method(self) -> None:
        assert MethodWrapper(scoped(), Processor.describe).invoke() == "Processor"

    def test_user_exceptions_propagate(self) -> None:
        def explode() -> None:
            msg = "boom"
            raise ValueError(msg)

        with pytest.raises(ValueError, match="boom"):
            MethodWrapper(scoped(), explode).invoke()

    def test_async_method(self) -> None:
        wrapper = MethodWrapper(scoped(), Processor.fetch)
        assert asyncio.run(wrapper.invoke_dict_async({"key": "abc"})) == "ABC"
        assert asyncio.run(wrapper.invoke_async("xyz", 0)) == "XYZ"

    def test_async_method_called_synchronously(self) -> None:
        assert MethodWrapper(scoped(), Processor.fetch).invoke("abc") == "ABC"

    def test_sync_call_inside_running_loop(self) -> None:
        wrapper = MethodWrapper(scoped(), Processor.fetch)

        async def main() -> object:
            return wrapper.invoke("abc")

        with pytest.raises(RuntimeError, match="invoke_async"):
            asyncio.run(main())

    def test_reflector_wrap(self) -> None:
        assert scoped().wrap(Processor.add).invoke(1, 2) == 3


class TestCallMethod:
    """Discovery followed by invocation."""

    def test_not_found(self) -> None:
        logs = Logs()
        result = scoped().call_method(MethodRef(method_name="nothing_like_this"), logs=logs)

        assert not result
        assert isinstance(result.error, OperationNotFound)
        assert result.method is None
        assert logs.has_errors

    def test_ambiguous(self) -> None:
        result = scoped().call_method(MethodRef(type_name="Calculator", method_name="scale"))

        assert isinstance(result.error, AmbiguousOperation)
        assert result.error.candidates == (
            "tests.models.Calculator.scale(builtins.float value, builtins.float factor)",
            "tests.models.Calculator.scale_count(builtins.int count)",
        )

    def test_narrowed_by_arguments(self) -> None:
        result = scoped().call_method(
            MethodRef(type_name="Calculator", method_name="scale"),
            arguments={"value": 2},
        )

        assert result.success
        assert result.value == 4.0
        assert result.method.name == "scale"

    def test_target(self) -> None:
        result = scoped().call_method(
            MethodRef(type_name="Calculator", method_name="scale"),
            target={"offset": 1},
            arguments={"value": 2},
        )
        assert result.value == 5.0

    def test_static_method_with_member_list(self) -> None:
        result = scoped().call_method(
            MethodRef(type_name="Processor", method_name="add"),
            method_name_match_level=6,
            arguments=[SerializedMember(name="a", value="4"), SerializedMember(name="b", value=1)],
        )
        assert result.value == 5

    def test_conversion_failure_is_a_result(self) -> None:
        result = scoped().call_method(
            MethodRef(type_name="Processor", method_name="add"),
            method_name_match_level=6,
            arguments={"a": "nope"},
        )

        assert not result.success
        assert isinstance(result.error, ArgumentCoercionFailed)
        assert result.error.parameter == "a"
        assert result.method.name == "add"

    def test_method_exceptions_propagate(self) -> None:
        with pytest.raises(TypeError):
            scoped().call_method(
                MethodRef(type_name="Processor", method_name="process"),
                method_name_match_level=6,
                arguments={"value": None},
            )

    def test_async(self) -> None:
        result = asyncio.run(
            scoped().call_method_async(
                MethodRef(type_name="Processor", method_name="fetch"),
                arguments={"key": "abc"},
            ),
        )
        assert result.value == "ABC"
