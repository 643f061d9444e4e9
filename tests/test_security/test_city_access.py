"""Tests for CityAccessResolver (base city scope, caching, sync)."""

import pytest

from scopeauth.security.city_access import CityAccessResolver, normalize_city_ids
from scopeauth.security.context import Actor
from scopeauth.security.errors import ScopeResolutionError


def test_normalize_city_ids():
    assert normalize_city_ids([3, "3", "4", None, "x", 5.0]) == [3, 4, 5]
    assert normalize_city_ids(None) == []


def test_admin_is_unrestricted_without_query(source_factory):
    source = source_factory(cities={1: [5]})
    record = CityAccessResolver().fetch(Actor(id=1, role="Admin"), source)
    assert record.all is True
    assert record.ids == ()
    assert sum(source.calls.values()) == 0


def test_admin_with_metadata_lists_every_city(source_factory):
    source = source_factory(city_names={1: "Pune", 2: "Mumbai"})
    record = CityAccessResolver().fetch(Actor(id=1, role="admin"), source, include_cities=True)
    assert record.all is True
    assert [c.name for c in record.cities] == ["Mumbai", "Pune"]
    assert record.ids == (2, 1)


def test_missing_actor_has_no_access(source_factory):
    record = CityAccessResolver().fetch(None, source_factory())
    assert record.all is False
    assert record.ids == ()
    assert record.cities == ()


def test_user_scope_is_cached(source_factory):
    source = source_factory(cities={7: [1, 2, 2]})
    resolver = CityAccessResolver()
    actor = Actor(id=7, role="staff")

    first = resolver.fetch(actor, source)
    second = resolver.fetch(actor, source)

    assert first is second
    assert first.ids == (1, 2)
    assert source.calls["city_ids"] == 1


def test_metadata_path_bypasses_cache(source_factory):
    source = source_factory(cities={7: [1]}, city_names={1: "Pune"})
    resolver = CityAccessResolver()
    actor = Actor(id=7)

    resolver.fetch(actor, source, include_cities=True)
    resolver.fetch(actor, source, include_cities=True)
    record = resolver.fetch(actor, source)

    assert source.calls["cities_for_user"] == 2
    assert source.calls["city_ids"] == 1
    assert record.cities is None


def test_invalidate_forces_reload(source_factory):
    source = source_factory(cities={7: [1]})
    resolver = CityAccessResolver()
    actor = Actor(id=7)

    resolver.fetch(actor, source)
    source.cities[7] = [4]
    resolver.invalidate()

    assert resolver.fetch(actor, source).ids == (4,)
    assert resolver.generation == 1


def test_sync_replaces_and_invalidates(source_factory):
    source = source_factory(cities={7: [1]})
    resolver = CityAccessResolver()
    actor = Actor(id=7)
    resolver.fetch(actor, source)

    ids = resolver.sync(source, 7, ["2", 3, 3, "junk"], granted_by=1)

    assert ids == [2, 3]
    assert source.cities[7] == [2, 3]
    assert resolver.generation == 1
    assert resolver.fetch(actor, source).ids == (2, 3)


def test_sync_with_no_ids_still_invalidates(source_factory):
    source = source_factory(cities={7: [1]})
    resolver = CityAccessResolver()

    assert resolver.sync(source, 7, []) == []
    assert source.cities[7] == []
    assert resolver.generation == 1


def test_sync_invalidates_even_when_write_fails(source_factory):
    source = source_factory()
    source.fail = True
    resolver = CityAccessResolver()

    with pytest.raises(ScopeResolutionError):
        resolver.sync(source, 7, [1])
    assert resolver.generation == 1
