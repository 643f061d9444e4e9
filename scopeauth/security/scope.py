"""
Scope values and the algebra used to combine them.

A scope is either *unrestricted* (``all=True``) or an explicit set of integer ids
(city ids or zone ids). Two operations are defined here and nowhere else:

    normalize(raw)          -> Scope   (lenient: junk ids are dropped, never raised)
    combine(base, overlay)  -> Scope   (order matters: base = identity, overlay = permission)
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Scope:
    all: bool = False
    ids: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        # An unrestricted scope never carries ids.
        if self.all and self.ids:
            object.__setattr__(self, "ids", frozenset())

    @classmethod
    def unrestricted(cls) -> Scope:
        return cls(all=True)

    @classmethod
    def empty(cls) -> Scope:
        return cls(all=False)

    @classmethod
    def of(cls, ids: Iterable[Any]) -> Scope:
        return cls(all=False, ids=frozenset(coerce_ids(ids)))

    @property
    def is_empty(self) -> bool:
        return not self.all and not self.ids

    def allows(self, value: Any) -> bool:
        if self.all:
            return True
        ident = coerce_id(value)
        return ident is not None and ident in self.ids

    def to_filter(self) -> list[int] | None:
        """
        Query-filter form of the scope.

        - ``None``: unrestricted, omit the predicate
        - ``[]``: no access, the predicate must exclude everything
        - ``[ids...]``: restrict to those ids (sorted for stable SQL)
        """

        if self.all:
            return None
        return sorted(self.ids)


def coerce_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def coerce_ids(values: Any) -> list[int]:
    """Coerce an iterable of id-like values to ints, dropping junk. Order kept, duplicates removed."""

    if values is None or isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return []

    seen: set[int] = set()
    result: list[int] = []
    for raw in values:
        ident = coerce_id(raw)
        if ident is not None and ident not in seen:
            seen.add(ident)
            result.append(ident)
    return result


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(name)
    return getattr(raw, name, None)


def normalize(raw: Any) -> Scope:
    """
    Turn any scope-like value into a Scope.

    Accepts a Scope, a mapping with ``all``/``ids`` keys, or any object exposing
    ``all``/``ids`` attributes (e.g. CityAccessRecord). ``None`` means no access.
    """

    if raw is None:
        return Scope.empty()
    if isinstance(raw, Scope):
        return raw
    if _field(raw, "all") is True:
        return Scope.unrestricted()
    return Scope.of(_field(raw, "ids"))


def combine(base: Any, overlay: Any) -> Scope:
    """
    Combine the identity-derived ``base`` scope with a permission-derived ``overlay``.

    Not symmetric. An unrestricted base short-circuits to unrestricted even when the
    overlay is narrower; callers rely on this, keep it.
    """

    base = normalize(base)
    overlay = normalize(overlay)

    if base.all:
        return Scope.unrestricted()

    if overlay.all:
        return Scope(all=False, ids=base.ids)

    if not base.ids and not overlay.ids:
        return Scope.empty()

    if not overlay.ids:
        return Scope(all=False, ids=base.ids)

    if not base.ids:
        return Scope.empty()

    return Scope(all=False, ids=base.ids & overlay.ids)
