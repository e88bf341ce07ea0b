"""Tests for the Reflector facade: serialize, deserialize, populate and compare."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest

from reflectorpy import (
    Array,
    CycleResolutionFailed,
    Logs,
    LogType,
    Reflector,
    ReflectorOptions,
    SerializedMember,
    TypeNotFound,
    UninstantiableType,
    Visibility,
    from_json,
    to_json,
)
from tests.models import (
    Address,
    Box,
    Cell,
    Color,
    Guarded,
    Money,
    Node,
    Person,
    Plain,
    Point,
    Shape,
    Status,
    Thermostat,
    Tree,
)


def make_person() -> Person:
    return Person(id=7, name="Ann", address=Address("Main", "Town"), tags=["a", "b"])


# (value, declared type)
ROUND_TRIP_CASES = [
    (make_person(), None),
    (Box(item=5), Box[int]),
    ({1: "one", 2: "two"}, dict[int, str]),
    ({Color.RED: 1}, dict[Color, int]),
    (Point(1, 2), None),
    (Money(Decimal("9.50")), None),
    ([[1, 2], [3, 4]], Array[int, 2]),
    ([Address("A"), Address("B")], list[Address]),
    ({1, 2, 3}, set[int]),
    ((1, "x"), tuple[int, str]),
    (Status.INACTIVE, None),
    ("text", None),
]


class TestOptions:
    """ReflectorOptions validation."""

    def test_defaults(self) -> None:
        options = ReflectorOptions()
        assert options.visibility == Visibility.PUBLIC
        assert options.modules is None

    def test_modules_become_a_tuple(self) -> None:
        options = ReflectorOptions(modules=["tests.models"])  # type: ignore[arg-type]
        assert options.modules == ("tests.models",)

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="cache_capacity"):
            ReflectorOptions(cache_capacity=0)

    def test_scoped_resolution(self) -> None:
        reflector = Reflector(ReflectorOptions(modules=("tests.models",)))
        assert reflector.resolve_type("Person") is Person
        assert reflector.resolve_type("builtins.list<Person>") == list[Person]


class TestSerialize:
    """Object graph to member tree."""

    def test_person_shape(self) -> None:
        data = Reflector().serialize(make_person())

        assert data.type_name == "tests.models.Person"
        assert [f.name for f in data.fields] == ["id", "name", "address", "tags"]
        assert [p.name for p in data.props] == ["status"]
        assert data.get_field("id").to_dict() == {"name": "id", "typeName": "builtins.int", "value": 7}
        assert data.get_field("tags").type_name == "builtins.list<builtins.str>"
        assert data.get_prop("status").value == "ACTIVE"

    def test_none(self) -> None:
        data = Reflector().serialize(None, Person, "owner")
        assert data.is_null
        assert data.type_name == "tests.models.Person"

    def test_declared_generic_arguments_are_kept(self) -> None:
        data = Reflector().serialize(Box(item=5), Box[int])
        assert data.type_name == "tests.models.Box<builtins.int>"
        assert data.get_field("item").type_name == "builtins.int"

    def test_array_elements_are_index_named(self) -> None:
        data = Reflector().serialize([[1, 2], [3]], Array[int, 2])

        assert data.type_name == "builtins.int[,]"
        assert [m.name for m in data.value] == ["[0]", "[1]"]
        assert data.value[0].type_name == "builtins.int[]"

    def test_non_recursive_emits_single_value(self) -> None:
        data = Reflector().serialize(Person(id=1, name="A"), recursive=False)
        assert data.fields is None
        assert data.value == {"id": 1, "name": "A", "address": None, "tags": []}

    def test_non_public_members_need_visibility(self) -> None:
        public = Reflector().serialize(Person())
        everything = Reflector(ReflectorOptions(visibility=Visibility.ALL)).serialize(Person())

        assert public.get_field("_secret") is None
        assert everything.get_field("_secret").value == "hidden"

    def test_cycle_becomes_reference(self) -> None:
        a = Node("a")
        b = Node("b", child=a)
        a.child = b
        logs = Logs()

        data = Reflector().serialize(a, logs=logs)

        back = data.get_field("child").get_field("child")
        assert back.is_reference
        assert back.reference_path == "#"
        assert back.to_dict() == {"name": "child", "typeName": "$ref", "value": "#"}
        assert any("Cycle detected" in e.message for e in logs.of_type(LogType.DEBUG))

    def test_reference_path_below_named_root(self) -> None:
        tree = Tree("root")
        tree.children.append(Tree("leaf", children=[tree]))

        data = Reflector().serialize(tree, name="tree")

        leaf = data.get_field("children").value[0]
        back = leaf.get_field("children").value[0]
        assert back.reference_path == "#/tree"

    def test_shared_siblings_are_not_references(self) -> None:
        address = Address("Main")
        data = Reflector().serialize([address, address], list[Address])
        assert not any(m.is_reference for m in data.value)

    def test_empty_mapping_key_has_its_own_path(self) -> None:
        cell = Cell("x")
        cell.me = cell

        data = Reflector().serialize({"": cell}, dict[str, Cell])

        (entry,) = data.fields
        assert entry.get_field("me").reference_path == "#/''"

    def test_plain_class_instance_attributes(self) -> None:
        data = Reflector().serialize(Plain(3, "z"))

        assert data.type_name == "tests.models.Plain"
        assert [f.name for f in data.fields] == ["count", "label"]
        assert data.get_field("count").to_dict() == {"name": "count", "typeName": "builtins.int", "value": 3}

    def test_private_instance_attributes_need_visibility(self) -> None:
        public = Reflector().serialize(Thermostat())
        everything = Reflector(ReflectorOptions(visibility=Visibility.ALL)).serialize(Thermostat())

        assert public.get_field("_target") is None
        assert everything.get_field("_target").value == 20.0


class TestDeserialize:
    """Member tree back to objects."""

    @pytest.mark.parametrize(("value", "declared"), ROUND_TRIP_CASES)
    def test_round_trip(self, value: Any, declared: Any) -> None:
        reflector = Reflector()
        data = reflector.serialize(value, declared)
        assert reflector.deserialize(data) == value

    @pytest.mark.parametrize(("value", "declared"), ROUND_TRIP_CASES)
    def test_round_trip_through_json(self, value: Any, declared: Any) -> None:
        reflector = Reflector()
        text = to_json(reflector.serialize(value, declared))
        assert reflector.deserialize(from_json(text)) == value

    def test_cycle_identity_restored(self) -> None:
        reflector = Reflector()
        a = Node("a")
        a.child = Node("b", child=a)

        restored = reflector.deserialize(from_json(to_json(reflector.serialize(a))))

        assert restored.name == "a"
        assert restored.child.name == "b"
        assert restored.child.child is restored

    def test_cycle_through_list(self) -> None:
        reflector = Reflector()
        tree = Tree("root")
        tree.children.append(Tree("leaf", children=[tree]))

        restored = reflector.deserialize(reflector.serialize(tree))

        assert restored.children[0].children[0] is restored

    def test_raw_object_with_declared_type(self) -> None:
        person = Reflector().deserialize({"name": "Bob", "id": "3"}, Person)
        assert person == Person(id=3, name="Bob")

    def test_raw_value_without_type(self) -> None:
        assert Reflector().deserialize(5) == 5

    def test_read_only_property_is_skipped(self) -> None:
        logs = Logs()
        data = Reflector().serialize(Person(id=1))

        Reflector().deserialize(data, logs=logs)

        assert "Property 'status' is read-only." in [e.message for e in logs.of_type(LogType.WARNING)]

    def test_unknown_type(self) -> None:
        with pytest.raises(TypeNotFound) as info:
            Reflector().deserialize({"typeName": "nowhere.Missing", "value": 1})
        assert info.value.identity == "nowhere.Missing"

    def test_members_without_type(self) -> None:
        data = SerializedMember(fields=[SerializedMember(name="x", value=1)])
        with pytest.raises(TypeNotFound, match="Data type is empty"):
            Reflector().deserialize(data)

    def test_dangling_reference(self) -> None:
        with pytest.raises(CycleResolutionFailed) as info:
            Reflector().deserialize(SerializedMember.reference("#/nowhere"))
        assert info.value.path == "#/nowhere"

    def test_null(self) -> None:
        assert Reflector().deserialize(SerializedMember.null(Person)) is None

    def test_reference_to_empty_mapping_key(self) -> None:
        reflector = Reflector()
        cell = Cell("x")
        cell.me = cell

        restored = reflector.deserialize(reflector.serialize({"": cell}, dict[str, Cell]))

        assert isinstance(restored[""], Cell)
        assert restored[""].me is restored[""]

    @pytest.mark.parametrize("through_json", [False, True])
    def test_plain_class_round_trip(self, *, through_json: bool) -> None:
        reflector = Reflector()
        data = reflector.serialize(Plain(3, "z"))
        if through_json:
            data = from_json(to_json(data))

        restored = reflector.deserialize(data)

        assert isinstance(restored, Plain)
        assert (restored.count, restored.label) == (3, "z")


class TestPopulate:
    """Applying data to existing objects."""

    def test_partial_failure_keeps_going(self) -> None:
        person = Person(id=1, name="Ann")
        data = SerializedMember(
            fields=[SerializedMember.from_value(str, "Bob", "name")],
            props=[SerializedMember.from_value(str, "INACTIVE", "status")],
        )
        logs = Logs()

        result = Reflector().populate(person, data, logs=logs)

        assert not result
        assert result.value is person
        assert person.name == "Bob"
        assert person.id == 1
        assert [e.message for e in logs.of_type(LogType.ERROR)] == ["Property 'status' is read-only."]
        assert "Field 'name' modified to 'Bob'." in [e.message for e in logs.of_type(LogType.SUCCESS)]

    def test_raw_mapping_patch(self) -> None:
        person = make_person()

        result = Reflector().populate(person, {"id": "9", "address": {"city": "Elsewhere"}})

        assert result.success
        assert person.id == 9
        assert person.address == Address("Main", "Elsewhere")

    def test_optional_generic_target(self) -> None:
        box = Box(item=Address("Main", "Town"))

        result = Reflector().populate(box, {"item": {"city": "Elsewhere"}}, Box[Address] | None)

        assert result.success
        assert result.value is box
        assert box.item == Address("Main", "Elsewhere")

    def test_raising_setter_keeps_going(self) -> None:
        guarded = Guarded()
        data = SerializedMember(
            fields=[SerializedMember.from_value(str, "Gil", "name")],
            props=[
                SerializedMember.from_value(int, -5, "age"),
                SerializedMember.from_value(str, "G", "nickname"),
            ],
        )
        logs = Logs()

        result = Reflector().populate(guarded, data, logs=logs)

        assert not result.success
        assert result.value is guarded
        assert guarded.name == "Gil"
        assert guarded.nickname == "G"
        assert guarded.age == 0
        assert [e.message for e in logs.of_type(LogType.ERROR)] == [
            "Property 'age' could not be set. ValueError: age must not be negative",
        ]

    def test_raising_getter_is_logged(self) -> None:
        logs = Logs()

        result = Reflector().populate(Guarded(), {"reading": 1.5, "nickname": "G"}, logs=logs)

        assert not result.success
        assert result.value.nickname == "G"
        (entry,) = logs.of_type(LogType.ERROR)
        assert entry.message == "Property 'reading' could not be set. RuntimeError: sensor offline"

    def test_plain_class_attribute(self) -> None:
        plain = Plain(3, "z")

        result = Reflector().populate(plain, {"count": 5})

        assert result.success
        assert (plain.count, plain.label) == (5, "z")

    def test_unknown_member(self) -> None:
        logs = Logs()
        result = Reflector().populate(Person(), {"nickname": "Al"}, logs=logs)

        assert not result.success
        (entry,) = logs.of_type(LogType.ERROR)
        assert entry.message.startswith("Field 'nickname' not found in type 'tests.models.Person'.")

    def test_filtered_member(self) -> None:
        logs = Logs()
        result = Reflector().populate(Person(), {"_secret": "x"}, logs=logs)

        assert not result.success
        assert "is not writable" in logs.of_type(LogType.ERROR)[0].message

    def test_writable_property(self) -> None:
        thermostat = Thermostat()
        assert Reflector().populate(thermostat, {"target": 22.5}).success
        assert thermostat.target == 22.5

    def test_tuple_returns_new_value(self) -> None:
        point = Point(1, 2)
        data = SerializedMember(fields=[SerializedMember(name="y", value=5)])

        result = Reflector().populate(point, data)

        assert result.success
        assert result.value == Point(1, 5)
        assert point == Point(1, 2)

    def test_list_updated_in_place(self) -> None:
        values = [1, 2]
        result = Reflector().populate(values, [3, 4, 5], list[int])

        assert result.success
        assert result.value is values
        assert values == [3, 4, 5]

    def test_scalar(self) -> None:
        assert Reflector().populate(1, SerializedMember(value="5"), int).value == 5

    def test_none_target_is_created(self) -> None:
        reflector = Reflector()
        result = reflector.populate(None, reflector.serialize(Address("Main")), Address)
        assert result.value == Address("Main")

    def test_type_mismatch(self) -> None:
        reflector = Reflector()
        logs = Logs()

        result = reflector.populate(Address(), reflector.serialize(Person()), logs=logs)

        assert not result.success
        assert logs.of_type(LogType.ERROR)[0].message.startswith("Type mismatch")

    def test_reference_is_rejected(self) -> None:
        logs = Logs()
        assert not Reflector().populate(Person(), SerializedMember.reference("#"), logs=logs)
        assert logs.has_errors


class TestEquality:
    """Structural comparison."""

    def test_equal_graphs(self) -> None:
        assert Reflector().are_equal(make_person(), make_person())

    def test_different_member(self) -> None:
        other = make_person()
        other.tags.append("c")
        assert not Reflector().are_equal(make_person(), other)

    def test_cycles(self) -> None:
        def ring() -> Node:
            a = Node("a")
            a.child = Node("b", child=a)
            return a

        assert Reflector().are_equal(ring(), ring())

    def test_different_types(self) -> None:
        assert not Reflector().are_equal(Address(), Person())

    def test_plain_class_attributes_are_compared(self) -> None:
        reflector = Reflector()
        assert reflector.are_equal(Plain(3, "z"), Plain(3, "z"))
        assert not reflector.are_equal(Plain(3, "z"), Plain(3, "y"))


class TestInstances:
    """create_instance and get_default_value."""

    @pytest.mark.parametrize(
        ("t", "expected"),
        [
            (int, 0),
            (bool, False),
            (Decimal, Decimal(0)),
            (Color, Color.RED),
            (str, None),
            (int | None, None),
            (Person, None),
            (Any, None),
        ],
    )
    def test_default_value(self, t: Any, expected: Any) -> None:
        assert Reflector().get_default_value(t) == expected

    def test_create_instance(self) -> None:
        reflector = Reflector()
        assert reflector.create_instance(Person) == Person()
        assert reflector.create_instance(list[int]) == []
        assert reflector.create_instance(dict[str, int]) == {}
        assert reflector.create_instance(Money).currency == "EUR"

    def test_abstract_type(self) -> None:
        with pytest.raises(UninstantiableType) as info:
            Reflector().create_instance(Shape)
        assert info.value.type_id == "tests.models.Shape"

    def test_clear_caches(self) -> None:
        reflector = Reflector()
        reflector.serialize(make_person())
        assert len(reflector.metadata) > 0

        reflector.clear_caches()

        assert len(reflector.metadata) == 0
