"""Tests for SerializedMember, its wire shape and the JSON adapter."""

from __future__ import annotations

import json

import pytest

from reflectorpy.formats.json import from_json, to_json
from reflectorpy.member import SerializedMember, as_member
from tests.models import Person


class TestConstruction:
    """Factory methods and queries."""

    def test_null(self) -> None:
        member = SerializedMember.null(Person, "owner")
        assert member.is_null
        assert member.type_name == "tests.models.Person"
        assert member.name == "owner"

    def test_from_value(self) -> None:
        member = SerializedMember.from_value(int, 5, "count")
        assert member.value == 5
        assert member.type_name == "builtins.int"
        assert not member.is_null

    def test_reference(self) -> None:
        member = SerializedMember.reference("#/child", "parent")
        assert member.is_reference
        assert member.reference_path == "#/child"

    def test_reference_path_from_mapping_value(self) -> None:
        member = SerializedMember(type_name="$ref", value={"$ref": "#"})
        assert member.reference_path == "#"

    def test_empty_member_list_is_not_null(self) -> None:
        member = SerializedMember(fields=[])
        assert not member.is_null
        assert not member.has_members

    def test_add_and_get(self) -> None:
        member = SerializedMember(type_name="tests.models.Person")
        member.add_field(SerializedMember.from_value(int, 1, "id"))
        member.add_prop(SerializedMember.from_value(str, "active", "status"))

        assert member.has_members
        assert member.get_field("id").value == 1
        assert member.get_prop("status").value == "active"
        assert member.get_field("missing") is None


class TestWireShape:
    """to_dict / from_dict."""

    def test_to_dict_omits_empty_keys(self) -> None:
        member = SerializedMember.from_value(int, 5, "count")
        assert member.to_dict() == {"name": "count", "typeName": "builtins.int", "value": 5}

    def test_nested_round_trip(self) -> None:
        member = SerializedMember(
            type_name="builtins.list<builtins.int>",
            value=[
                SerializedMember.from_value(int, 1, "[0]"),
                SerializedMember.from_value(int, 2, "[1]"),
            ],
        )
        data = member.to_dict()
        assert data["value"][1] == {"name": "[1]", "typeName": "builtins.int", "value": 2}

        restored = SerializedMember.from_dict(data)
        assert restored.type_name == member.type_name
        assert restored.value == data["value"]

    def test_fields_round_trip(self) -> None:
        member = SerializedMember(type_name="tests.models.Person", fields=[])
        member.add_field(SerializedMember.from_value(str, "Ann", "name"))

        restored = SerializedMember.from_dict(member.to_dict())
        assert restored == member

    def test_from_dict_rejects_non_mapping(self) -> None:
        with pytest.raises(TypeError, match="mapping"):
            SerializedMember.from_dict([1, 2])  # type: ignore[arg-type]


class TestAsMember:
    """Telling serialized members apart from raw payloads."""

    @pytest.mark.parametrize(
        "data",
        [
            {"typeName": "builtins.int", "value": 1},
            {"value": 1},
            {"name": "[0]"},
            {"name": "x", "fields": []},
        ],
    )
    def test_member_shapes(self, data: dict[str, object]) -> None:
        assert SerializedMember.looks_like_member(data)
        assert as_member(data) == SerializedMember.from_dict(data)

    @pytest.mark.parametrize(
        "data",
        [
            {"name": "Bob"},
            {"name": "Bob", "age": 3},
            {},
            [1, 2],
            "text",
            5,
        ],
    )
    def test_raw_values(self, data: object) -> None:
        assert not SerializedMember.looks_like_member(data)
        assert as_member(data) == SerializedMember(value=data)

    def test_member_passes_through(self) -> None:
        member = SerializedMember(value=1)
        assert as_member(member) is member


class TestJson:
    """JSON format adapter."""

    def test_to_json(self) -> None:
        text = to_json(SerializedMember.from_value(int, 5, "count"), indent=None)
        assert json.loads(text) == {"name": "count", "typeName": "builtins.int", "value": 5}

    def test_from_json(self) -> None:
        member = from_json('{"typeName": "$ref", "value": "#"}')
        assert member.is_reference
        assert member.reference_path == "#"

    def test_round_trip(self) -> None:
        member = SerializedMember(type_name="tests.models.Person", fields=[])
        member.add_field(SerializedMember.from_value(int, 7, "id"))
        assert from_json(to_json(member)) == member

    def test_from_json_rejects_non_object(self) -> None:
        with pytest.raises(ValueError, match="JSON object"):
            from_json("[1, 2]")
