from __future__ import annotations

from dataclasses import dataclass, field

from scopeauth.security.scope import Scope


def permission_key(module: str, action: str) -> str:
    return f"{module}:{action}".lower()


@dataclass(frozen=True)
class Actor:
    """
    Authenticated caller, as handed over by the authentication layer.

    ``role`` is optional; an actor without a role simply has no role-derived bypass.
    """

    id: int
    role: str | None = None

    def has_role(self, role: str) -> bool:
        return self.role is not None and self.role.lower() == role.lower()


@dataclass
class RequestAuthz:
    """
    Per-request authorization state, attached to ``request.state.authz``.

    Each successful ``authorize(module, action)`` gate records the effective city
    scope under the permission key that matched (which can be ``module:write`` for a
    ``view`` check).
    """

    actor: Actor
    scopes: dict[str, Scope] = field(default_factory=dict)
    zone_scope: Scope | None = None

    def record(self, key: str, scope: Scope) -> None:
        self.scopes[key] = scope

    def scope_for(self, module: str, action: str) -> Scope | None:
        key = permission_key(module, action)
        if key in self.scopes:
            return self.scopes[key]
        if action.lower() == "view":
            return self.scopes.get(permission_key(module, "write"))
        return None

    def city_filter(self, module: str, action: str) -> list[int] | None:
        """
        ``None`` = unrestricted, ``[]`` = nothing, otherwise the allowed city ids.

        A permission that was never authorized on this request yields ``[]``.
        """

        scope = self.scope_for(module, action)
        if scope is None:
            return []
        return scope.to_filter()
