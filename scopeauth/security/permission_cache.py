"""
Generation-keyed cache of per-user permission bundles.

Entries are keyed by ``(user_id, generation)``. ``invalidate()`` bumps the
generation, so every older entry becomes unreachable at once; nothing is
time-based. Concurrent loads for the same key are not serialized: the first
bundle stored for a key is the one every caller sees.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from scopeauth.security.context import permission_key
from scopeauth.security.grants import GrantRow, GrantSource
from scopeauth.security.scope import Scope, coerce_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionBundle:
    granted_keys: frozenset[str] = frozenset()
    city_scope_by_key: Mapping[str, Scope] = field(default_factory=lambda: MappingProxyType({}))

    def has(self, key: str) -> bool:
        return key in self.granted_keys

    def scope_for(self, key: str) -> Scope | None:
        return self.city_scope_by_key.get(key)


def build_permission_bundle(rows: Iterable[GrantRow]) -> PermissionBundle:
    """
    Aggregate grant rows into a bundle.

    Rows for the same key union their city ids; a row without a city makes the key
    unrestricted and any further city rows for it are ignored.
    """

    unrestricted: set[str] = set()
    city_ids: dict[str, set[int]] = {}

    for row in rows:
        key = permission_key(row.module, row.action)
        ids = city_ids.setdefault(key, set())
        if row.city_id is None:
            unrestricted.add(key)
            ids.clear()
        elif key not in unrestricted:
            city = coerce_id(row.city_id)
            if city is not None:
                ids.add(city)

    scopes = {
        key: Scope.unrestricted() if key in unrestricted else Scope(all=False, ids=frozenset(ids))
        for key, ids in city_ids.items()
    }
    return PermissionBundle(granted_keys=frozenset(city_ids), city_scope_by_key=MappingProxyType(scopes))


class PermissionCache:
    def __init__(self, on_invalidate: Callable[[], None] | None = None) -> None:
        self._generation = 0
        self._entries: dict[tuple[int, int], PermissionBundle] = {}
        self._on_invalidate = on_invalidate

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, user_id: int, source: GrantSource) -> PermissionBundle:
        if not user_id:
            return PermissionBundle()

        cache_key = (user_id, self._generation)
        cached = self._entries.get(cache_key)
        if cached is not None:
            logger.debug("Permission cache hit user_id=%s generation=%s", user_id, cache_key[1])
            return cached

        logger.debug("Permission cache miss user_id=%s generation=%s", user_id, cache_key[1])
        bundle = build_permission_bundle(source.permission_rows(user_id))

        if cache_key[1] != self._generation:
            # Invalidated while loading; hand the result to this caller only.
            return bundle
        return self._entries.setdefault(cache_key, bundle)

    def invalidate(self) -> None:
        self._generation += 1
        self._entries.clear()
        logger.debug("Permission cache invalidated generation=%s", self._generation)
        if self._on_invalidate is not None:
            self._on_invalidate()
