"""Tests for the scope algebra (normalize / combine)."""

import pytest

from scopeauth.security.scope import Scope, coerce_ids, combine, normalize


def test_normalize_none_is_empty():
    assert normalize(None) == Scope(all=False, ids=frozenset())


def test_normalize_all_ignores_ids():
    scope = normalize({"all": True, "ids": [1, 2]})
    assert scope.all is True
    assert scope.ids == frozenset()


def test_normalize_only_literal_true_means_all():
    assert normalize({"all": 1, "ids": [3]}) == Scope.of([3])


def test_normalize_drops_non_numeric_ids():
    scope = normalize({"ids": [1, "2", "x", None, float("nan"), float("inf"), 2.5, True, "3.0"]})
    assert scope == Scope(all=False, ids=frozenset({1, 2, 3}))


def test_normalize_accepts_objects_with_attributes():
    class Record:
        all = False
        ids = (4, 5)

    assert normalize(Record()) == Scope.of([4, 5])


def test_normalize_non_iterable_ids():
    assert normalize({"ids": "12"}).ids == frozenset()
    assert normalize({"ids": 7}).ids == frozenset()


def test_coerce_ids_keeps_order_and_dedupes():
    assert coerce_ids(["3", 1, 3, "1", "bad"]) == [3, 1]


def test_unrestricted_scope_drops_ids():
    assert Scope(all=True, ids=frozenset({1})).ids == frozenset()


@pytest.mark.parametrize(
    "overlay",
    [None, Scope.unrestricted(), Scope.empty(), Scope.of([1]), {"ids": [9, 10]}],
)
def test_combine_unrestricted_base_short_circuits(overlay):
    assert combine(Scope.unrestricted(), overlay) == Scope.unrestricted()


def test_combine_unrestricted_overlay_keeps_base_ids():
    assert combine(Scope.of([1, 2]), Scope.unrestricted()) == Scope.of([1, 2])


def test_combine_both_empty():
    assert combine(Scope.empty(), Scope.empty()) == Scope.empty()


def test_combine_empty_overlay_keeps_base():
    assert combine(Scope.of([1, 2]), Scope.empty()) == Scope.of([1, 2])


def test_combine_empty_base_starves():
    assert combine(Scope.empty(), Scope.of([1, 2])) == Scope.empty()
    assert combine(None, {"ids": [5]}) == Scope.empty()


def test_combine_intersects_explicit_sets():
    assert combine(Scope.of([1, 2, 3]), Scope.of([2, 3, 4])).ids == frozenset({2, 3})


def test_combine_disjoint_sets_give_nothing():
    result = combine(Scope.of([1]), Scope.of([2]))
    assert result.all is False
    assert result.ids == frozenset()


def test_combine_is_order_sensitive():
    assert combine(Scope.unrestricted(), Scope.of([1])) == Scope.unrestricted()
    assert combine(Scope.of([1]), Scope.unrestricted()) == Scope.of([1])


def test_to_filter():
    assert Scope.unrestricted().to_filter() is None
    assert Scope.empty().to_filter() == []
    assert Scope.of([3, 1]).to_filter() == [1, 3]


def test_allows():
    assert Scope.unrestricted().allows("anything")
    assert Scope.of([2]).allows("2")
    assert not Scope.of([2]).allows(3)
    assert not Scope.of([2]).allows("x")
