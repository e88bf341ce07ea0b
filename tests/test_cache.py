"""Tests for the LRU cache, type scopes and member metadata."""

from __future__ import annotations

import threading

import pytest

from reflectorpy.cache import LruCache, TypeScope
from reflectorpy.members import MetadataCache, Visibility, introspect
from tests.models import Account, Money, Outer, Person, Point, Thermostat


class TestLruCache:
    """Bounded least-recently-used cache."""

    def test_evicts_least_recently_used(self) -> None:
        cache: LruCache[str, int] = LruCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.try_get("a")
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_get_or_add_computes_once(self) -> None:
        cache: LruCache[str, int] = LruCache()
        calls: list[str] = []

        def factory(key: str) -> int:
            calls.append(key)
            return len(key)

        assert cache.get_or_add("abc", factory) == 3
        assert cache.get_or_add("abc", factory) == 3
        assert calls == ["abc"]

    def test_concurrent_get_or_add_computes_once(self) -> None:
        cache: LruCache[int, object] = LruCache()
        calls: list[int] = []
        results: list[object] = []

        def factory(key: int) -> object:
            calls.append(key)
            return object()

        def worker() -> None:
            results.append(cache.get_or_add(1, factory))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert calls == [1]
        assert all(r is results[0] for r in results)

    def test_try_get_miss(self) -> None:
        assert LruCache().try_get("missing") == (False, None)

    def test_remove_and_clear(self) -> None:
        cache: LruCache[str, int] = LruCache()
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.remove("a") is True
        assert cache.remove("a") is False
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_capacity_must_be_positive(self, capacity: int) -> None:
        with pytest.raises(ValueError, match="Capacity"):
            LruCache(capacity)


class TestTypeScope:
    """Module sets that types are listed and resolved in."""

    def test_scoped_listing(self) -> None:
        scope = TypeScope(["tests.models"])
        types = scope.all_types()

        assert Person in types
        assert Outer.Inner in types
        assert int in types
        assert TestTypeScope not in types

    def test_builtins_always_included(self) -> None:
        scope = TypeScope(["tests.models"])
        assert scope.includes("builtins")
        assert scope.includes("tests.models")
        assert not scope.includes("tests.test_cache")

    def test_unscoped_includes_everything(self) -> None:
        assert TypeScope().includes("tests.test_cache")

    def test_find_by_identity(self) -> None:
        scope = TypeScope(["tests.models"])
        assert scope.find("tests.models.Outer+Inner") is Outer.Inner
        assert scope.find("tests.models.Missing") is None

    def test_find_survives_every_loaded_class(self) -> None:
        scope = TypeScope()
        assert scope.find("nowhere.Missing") is None
        assert scope.find("tests.models.Person") is Person

    def test_find_by_name(self) -> None:
        scope = TypeScope(["tests.models"])
        assert scope.find_by_name("Thermostat") is Thermostat
        assert scope.find_by_name("Missing") is None

    def test_clear_forgets_resolutions(self) -> None:
        scope = TypeScope(["tests.models"])
        scope.remember("x", Person)
        scope.clear()
        assert scope.recall("x") == (False, None)


class TestMembers:
    """Field and property introspection."""

    def test_dataclass_fields_and_properties(self) -> None:
        members = introspect(Person)

        assert [f.name for f in members.fields] == ["id", "name", "address", "tags"]
        assert [p.name for p in members.properties] == ["status"]
        assert members.get_property("status").writable is False

    def test_non_public_members_need_visibility(self) -> None:
        members = introspect(Person, Visibility.ALL)
        assert members.get_field("_secret") is not None

    def test_description_from_annotation(self) -> None:
        assert introspect(Person).get_field("name").description == "Full name"

    def test_frozen_dataclass_fields_are_read_only(self) -> None:
        members = introspect(Money)
        assert all(not f.writable for f in members.fields)

    def test_plain_class_annotations_and_properties(self) -> None:
        members = introspect(Thermostat)

        assert [f.name for f in members.fields] == ["unit"]
        assert members.get_property("target").writable is True

    def test_defaults_recorded(self) -> None:
        balance = introspect(Account).get_field("balance")
        assert balance.has_default

    def test_builtins_have_no_members(self) -> None:
        members = introspect(int)
        assert members.fields == ()
        assert members.properties == ()

    def test_named_tuple_fields(self) -> None:
        assert [f.name for f in introspect(Point).fields] == ["x", "y"]


class TestMetadataCache:
    """Memoized member listings."""

    def test_listing_is_memoized(self) -> None:
        cache = MetadataCache()
        first = cache.get_members(Person)
        assert cache.get_members(Person) is first
        assert len(cache) == 1

    def test_keyed_by_visibility(self) -> None:
        cache = MetadataCache()
        cache.get_members(Person)
        cache.get_members(Person, Visibility.ALL)
        assert len(cache) == 2

    def test_generic_alias_shares_origin_listing(self) -> None:
        cache = MetadataCache()
        assert cache.get_members(list[int]).fields == ()

    def test_clear(self) -> None:
        cache = MetadataCache()
        cache.get_members(Person)
        cache.clear()
        assert len(cache) == 0
