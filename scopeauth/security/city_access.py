from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from scopeauth.security.context import Actor
from scopeauth.security.grants import CityRow, GrantSource
from scopeauth.security.scope import coerce_ids

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CityAccessRecord:
    """
    A user's base city scope.

    ``cities`` is only populated when metadata was requested (display paths).
    """

    all: bool
    ids: tuple[int, ...] = ()
    cities: tuple[CityRow, ...] | None = None


def normalize_city_ids(city_ids: Iterable[Any] | None) -> list[int]:
    return coerce_ids(city_ids or [])


class CityAccessResolver:
    """
    Resolves base city scope per user, cached under its own generation counter.

    The metadata path (``include_cities=True``) always re-queries and is never stored.
    """

    def __init__(self, admin_role: str = "admin") -> None:
        self.admin_role = admin_role
        self._generation = 0
        self._entries: dict[tuple[int, int], CityAccessRecord] = {}

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> None:
        self._generation += 1
        self._entries.clear()
        logger.debug("City access cache invalidated generation=%s", self._generation)

    def fetch(self, actor: Actor | None, source: GrantSource, *, include_cities: bool = False) -> CityAccessRecord:
        if actor is None or not actor.id:
            return CityAccessRecord(all=False, ids=(), cities=())

        if actor.has_role(self.admin_role):
            if include_cities:
                rows = tuple(source.all_cities())
                return CityAccessRecord(all=True, ids=tuple(normalize_city_ids(r.id for r in rows)), cities=rows)
            return CityAccessRecord(all=True)

        if include_cities:
            rows = tuple(source.cities_for_user(actor.id))
            return CityAccessRecord(all=False, ids=tuple(normalize_city_ids(r.id for r in rows)), cities=rows)

        cache_key = (actor.id, self._generation)
        cached = self._entries.get(cache_key)
        if cached is not None:
            return cached

        record = CityAccessRecord(all=False, ids=tuple(normalize_city_ids(source.city_ids(actor.id))))
        if cache_key[1] != self._generation:
            return record
        return self._entries.setdefault(cache_key, record)

    def sync(self, source: GrantSource, user_id: int, city_ids: Iterable[Any], granted_by: int | None = None) -> list[int]:
        """
        Replace the user's city grants with ``city_ids`` and invalidate the cache.

        Duplicates and junk ids are dropped first. The cache is invalidated even when
        the new set is empty.
        """

        ids = normalize_city_ids(city_ids)
        try:
            source.replace_city_access(user_id, ids, granted_by)
        finally:
            self.invalidate()
        return ids
