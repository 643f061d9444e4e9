from __future__ import annotations

from typing import Any

from scopeauth.security.context import Actor
from scopeauth.security.grants import GrantSource
from scopeauth.security.scope import Scope, coerce_id


class ZoneAccessResolver:
    """
    Zone scope per user.

    Unlike city access this is recomputed on every call; there is no cache to
    invalidate when zone grants change.
    """

    def __init__(self, admin_role: str = "admin") -> None:
        self.admin_role = admin_role

    def fetch(self, actor: Actor | None, source: GrantSource) -> Scope:
        if actor is None or not actor.id:
            return Scope.empty()
        if actor.has_role(self.admin_role):
            return Scope.unrestricted()
        return Scope.of(source.zone_ids(actor.id))


def assert_zone_access(scope: Scope | None, zone_id: Any) -> bool:
    """True when ``zone_id`` is inside ``scope``. A missing scope does not restrict."""

    if scope is None or scope.all:
        return True
    zone = coerce_id(zone_id)
    return zone is not None and zone in scope.ids

