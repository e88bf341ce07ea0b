"""Tests for ScalarCodecs and plain-value rendering."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path, PosixPath, PurePath
from uuid import UUID

import pytest

from reflectorpy import Reflector
from reflectorpy.codecs import ScalarCodecs, plain_value
from tests.models import Address, Color, Money, Node, Perm, Person, Point


def encode_money(m: Money) -> str:
    return f"{m.amount} {m.currency}"


def decode_money(text: str) -> Money:
    amount, currency = text.split()
    return Money(Decimal(amount), currency)


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    """Registering, looking up and removing codecs."""

    def test_register_and_get(self) -> None:
        codecs = ScalarCodecs()
        codecs.register(Money, encode=encode_money, decode=decode_money)

        codec = codecs.get(Money)

        assert codec is not None
        encode, decode = codec
        assert encode(Money(Decimal("2"), "USD")) == "2 USD"
        assert decode("2 USD") == Money(Decimal(2), "USD")

    def test_get_is_exact(self) -> None:
        codecs = ScalarCodecs()
        assert codecs.get(PurePath) is not None
        assert codecs.get(PosixPath) is None

    def test_lookup_walks_the_mro(self) -> None:
        found = ScalarCodecs().lookup(PosixPath)

        assert found is not None
        base, _, decode = found
        assert base is PurePath
        assert decode("/tmp/x") == Path("/tmp/x")

    def test_lookup_ignores_non_types(self) -> None:
        assert ScalarCodecs().lookup(list[int]) is None
        assert list[int] not in ScalarCodecs()

    def test_unregister(self) -> None:
        codecs = ScalarCodecs()

        assert codecs.unregister(UUID)
        assert not codecs.unregister(UUID)
        assert UUID not in codecs

    def test_clear_restores_builtins(self) -> None:
        codecs = ScalarCodecs()
        codecs.register(Money, encode=encode_money, decode=decode_money)
        codecs.unregister(Decimal)

        codecs.clear()

        assert Money not in codecs
        assert Decimal in codecs

    def test_without_builtins(self) -> None:
        codecs = ScalarCodecs(builtins=False)
        assert datetime not in codecs
        assert codecs.encode(b"hi") == b"hi"


# =============================================================================
# Builtin codecs
# =============================================================================


class TestBuiltinCodecs:
    """Encodings of the pre-registered scalar types."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (b"hi", "aGk="),
            (bytearray(b"hi"), "aGk="),
            (datetime(2024, 1, 15, 10, 30), "2024-01-15T10:30:00"),
            (date(2024, 1, 15), "2024-01-15"),
            (time(10, 30), "10:30:00"),
            (timedelta(minutes=1, seconds=30), 90.0),
            (Decimal("1.50"), "1.50"),
            (UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678"),
            (complex(1, 2), "(1+2j)"),
            (PurePath("a/b"), "a/b"),
        ],
    )
    def test_encode(self, value: object, expected: object) -> None:
        assert ScalarCodecs().encode(value) == expected

    def test_unregistered_values_pass_through(self) -> None:
        address = Address()
        assert ScalarCodecs().encode(address) is address

    def test_timedelta_decodes_from_seconds(self) -> None:
        _, _, decode = ScalarCodecs().lookup(timedelta)
        assert decode("90") == timedelta(seconds=90)


# =============================================================================
# Codecs through the reflector
# =============================================================================


class TestReflectorCodecs:
    """Codec-backed types serialize as a single value."""

    def test_custom_codec_turns_class_into_scalar(self) -> None:
        codecs = ScalarCodecs()
        codecs.register(Money, encode=encode_money, decode=decode_money)
        reflector = Reflector(codecs=codecs)

        data = reflector.serialize(Money(Decimal("1.5"), "USD"))

        assert data.type_name == "tests.models.Money"
        assert data.value == "1.5 USD"
        assert data.fields is None
        assert reflector.deserialize(data) == Money(Decimal("1.5"), "USD")

    def test_builtin_scalars(self) -> None:
        reflector = Reflector()
        moment = datetime(2024, 1, 15, 10, 30)

        data = reflector.serialize(moment)

        assert data.type_name == "datetime.datetime"
        assert data.value == "2024-01-15T10:30:00"
        assert reflector.deserialize(data) == moment

    def test_decoding_from_non_text(self) -> None:
        reflector = Reflector()
        data = reflector.serialize(timedelta(seconds=90))

        assert data.value == 90.0
        assert reflector.deserialize(data) == timedelta(seconds=90)

    def test_bytes(self) -> None:
        reflector = Reflector()
        data = reflector.serialize(b"hi")
        assert reflector.deserialize(data) == b"hi"

    @pytest.mark.parametrize("flag", [Perm.R, Perm.R | Perm.W, Perm(0)])
    def test_flags(self, flag: Perm) -> None:
        reflector = Reflector()
        data = reflector.serialize(flag)

        assert data.type_name == "tests.models.Perm"
        assert reflector.deserialize(data) == flag


# =============================================================================
# plain_value
# =============================================================================


class TestPlainValue:
    """Rendering arbitrary objects as JSON-compatible builtins."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, None),
            (True, True),
            (3, 3),
            ("x", "x"),
            (Color.GREEN, "GREEN"),
            (Perm.R | Perm.W, "R|W"),
            (Perm(0), 0),
            (Decimal("1.5"), "1.5"),
            (Person, "tests.models.Person"),
            (Point(1, 2), [1, 2]),
            ({1: Color.RED}, {"1": "RED"}),
            ((1, "a"), [1, "a"]),
        ],
    )
    def test_values(self, value: object, expected: object) -> None:
        assert plain_value(value) == expected

    def test_dataclass_skips_private_fields(self) -> None:
        person = Person(id=1, name="Ann", address=Address("Main", "Town"))
        assert plain_value(person) == {
            "id": 1,
            "name": "Ann",
            "address": {"street": "Main", "city": "Town"},
            "tags": [],
        }

    def test_set(self) -> None:
        assert sorted(plain_value({3, 1, 2})) == [1, 2, 3]

    def test_plain_object_public_attributes(self) -> None:
        class Holder:
            def __init__(self) -> None:
                self.value = 1
                self._hidden = 2

        assert plain_value(Holder()) == {"value": 1}

    def test_cycles_become_none(self) -> None:
        a = Node("a")
        a.child = a
        assert plain_value(a) == {"name": "a", "child": None}

    def test_custom_codecs(self) -> None:
        codecs = ScalarCodecs()
        codecs.register(Money, encode=encode_money, decode=decode_money)
        assert plain_value([Money(Decimal(3))], codecs) == ["3 EUR"]
