from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from scopeauth.security.city_access import CityAccessRecord, CityAccessResolver
from scopeauth.security.context import Actor
from scopeauth.security.decision import Decision, decide
from scopeauth.security.grants import GrantSource
from scopeauth.security.permission_cache import PermissionBundle, PermissionCache
from scopeauth.security.scope import Scope
from scopeauth.security.zone_access import ZoneAccessResolver


class AccessControl:
    """
    Owns the permission cache and the city/zone resolvers.

    Built once at startup (see ``main.create_app``) and stored on ``app.state``;
    request code reaches it through ``dependencies.get_access_control``. Data access
    goes through the per-request ``GrantSource`` passed to each call.
    """

    def __init__(self, admin_role: str = "admin") -> None:
        self.admin_role = admin_role
        self.cities = CityAccessResolver(admin_role=admin_role)
        self.zones = ZoneAccessResolver(admin_role=admin_role)
        # A permission change invalidates derived city scopes as well.
        self.permissions = PermissionCache(on_invalidate=self.cities.invalidate)

    def authorize(self, actor: Actor | None, module: str, action: str, source: GrantSource) -> Decision:
        return decide(
            actor,
            module,
            action,
            permissions=self.permissions,
            cities=self.cities,
            source=source,
            admin_role=self.admin_role,
        )

    def resolve_permissions(self, actor: Actor, source: GrantSource) -> PermissionBundle:
        return self.permissions.resolve(actor.id, source)

    def fetch_city_access(self, actor: Actor | None, source: GrantSource, *, include_cities: bool = False) -> CityAccessRecord:
        return self.cities.fetch(actor, source, include_cities=include_cities)

    def fetch_zone_access(self, actor: Actor | None, source: GrantSource) -> Scope:
        return self.zones.fetch(actor, source)

    def invalidate_permission_cache(self) -> None:
        self.permissions.invalidate()

    def sync_city_access(
        self,
        source: GrantSource,
        user_id: int,
        city_ids: Iterable[Any],
        granted_by: int | None = None,
    ) -> list[int]:
        return self.cities.sync(source, user_id, city_ids, granted_by)
