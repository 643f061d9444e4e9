"""
Authorization decision procedure.

    decide(actor, module, action) -> Granted | Forbidden | Unauthenticated

Algorithm:
1. No actor -> Unauthenticated.
2. Admin role -> Granted(all), nothing else is consulted.
3. Resolve the actor's permission bundle (cached per generation).
4. Candidate keys: ``module:action``; for ``view`` also ``module:write``.
5. First candidate the actor holds wins; none -> Forbidden(required key).
6. Effective scope = combine(base city scope, matched key's city scope).

Every outcome is terminal; callers re-run the whole procedure per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from scopeauth.security.city_access import CityAccessResolver
from scopeauth.security.context import Actor, permission_key
from scopeauth.security.grants import GrantSource
from scopeauth.security.permission_cache import PermissionCache
from scopeauth.security.scope import Scope, combine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Granted:
    key: str
    """Permission key that matched (``module:write`` when a view check fell back)."""

    scope: Scope


@dataclass(frozen=True)
class Forbidden:
    required_key: str


@dataclass(frozen=True)
class Unauthenticated:
    pass


Decision = Union[Granted, Forbidden, Unauthenticated]


def candidate_keys(module: str, action: str) -> list[str]:
    keys = [permission_key(module, action)]
    if action.lower() == "view":
        keys.append(permission_key(module, "write"))
    return keys


def decide(
    actor: Actor | None,
    module: str,
    action: str,
    *,
    permissions: PermissionCache,
    cities: CityAccessResolver,
    source: GrantSource,
    admin_role: str = "admin",
) -> Decision:
    if actor is None or not actor.id:
        return Unauthenticated()

    required_key = permission_key(module, action)

    if actor.has_role(admin_role):
        return Granted(key=required_key, scope=Scope.unrestricted())

    bundle = permissions.resolve(actor.id, source)
    matched = next((key for key in candidate_keys(module, action) if bundle.has(key)), None)
    if matched is None:
        logger.info("Permission denied user_id=%s required=%s", actor.id, required_key)
        return Forbidden(required_key=required_key)

    base = cities.fetch(actor, source)
    scope = combine(base, bundle.scope_for(matched))
    logger.debug(
        "Permission granted user_id=%s required=%s matched=%s all=%s ids=%s",
        actor.id,
        required_key,
        matched,
        scope.all,
        sorted(scope.ids),
    )
    return Granted(key=matched, scope=scope)
