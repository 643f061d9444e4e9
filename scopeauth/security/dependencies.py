from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from scopeauth.db.session import get_db
from scopeauth.security.auth import extract_actor
from scopeauth.security.config import SecurityConfig
from scopeauth.security.context import Actor, RequestAuthz
from scopeauth.security.decision import Forbidden, Granted, Unauthenticated
from scopeauth.security.errors import ScopeResolutionError
from scopeauth.security.grants import SqlGrantSource
from scopeauth.security.scope import Scope
from scopeauth.security.service import AccessControl
from scopeauth.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_access_control(request: Request) -> AccessControl:
    access = getattr(request.app.state, "access_control", None)
    if access is None:
        raise RuntimeError("Access control not initialized. Did app startup run?")
    return access


def get_grant_source(db: Session = Depends(get_db)) -> SqlGrantSource:
    return SqlGrantSource(db)


def get_request_authz(request: Request) -> RequestAuthz:
    authz = getattr(request.state, "authz", None)
    if authz is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: user context missing")
    return authz


def get_current_actor(authz: RequestAuthz = Depends(get_request_authz)) -> Actor:
    return authz.actor


def get_zone_scope(request: Request) -> Scope | None:
    authz = getattr(request.state, "authz", None)
    return authz.zone_scope if authz is not None else None


def effective_city_filter(request: Request, module: str, action: str) -> list[int] | None:
    """
    City filter for ``module:action`` on this request.

    ``None`` = unrestricted, ``[]`` = no access, otherwise allowed city ids. Falls back
    to the ``module:write`` scope for ``view`` when that is what authorized the call.
    """

    authz = getattr(request.state, "authz", None)
    if authz is None:
        return []
    return authz.city_filter(module, action)


def _ensure_authz(request: Request, config: SecurityConfig, settings: Settings) -> RequestAuthz:
    authz = getattr(request.state, "authz", None)
    if authz is not None:
        return authz

    actor = extract_actor(request, config, settings)
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: user context missing")

    authz = RequestAuthz(actor=actor)
    request.state.authz = authz
    return authz


def _check_permission(
    authz: RequestAuthz,
    module: str,
    action: str,
    access: AccessControl,
    source: SqlGrantSource,
) -> None:
    try:
        decision = access.authorize(authz.actor, module, action, source)
    except ScopeResolutionError:
        logger.exception("Permission check failed user_id=%s module=%s action=%s", authz.actor.id, module, action)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Permission check failed")

    if isinstance(decision, Unauthenticated):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: user context missing")
    if isinstance(decision, Forbidden):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Forbidden: missing permission", "permission": decision.required_key},
        )
    assert isinstance(decision, Granted)
    authz.record(decision.key, decision.scope)


def _attach_zone_scope(authz: RequestAuthz, access: AccessControl, source: SqlGrantSource) -> None:
    try:
        authz.zone_scope = access.fetch_zone_access(authz.actor, source)
    except ScopeResolutionError:
        logger.exception("Failed to resolve zone scope user_id=%s", authz.actor.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to resolve zone access scope.",
        )


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    access: AccessControl = Depends(get_access_control),
    db: Session = Depends(get_db, use_cache=False),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Global security dependency (PRIMARY, configuration-driven).

    Route rules in security_config.yaml decide whether a caller is needed, which
    ``module:action`` permission to check and whether to attach the zone scope.
    Handlers read the outcome from ``request.state.authz``.
    """

    rule = config.match(request.url.path, request.method)
    if not rule.auth_required:
        return

    authz = _ensure_authz(request, config, settings)
    source = SqlGrantSource(db)

    if rule.permission is not None:
        module, action = rule.permission
        _check_permission(authz, module, action, access, source)

    if rule.zone_scope:
        _attach_zone_scope(authz, access, source)


def authorize(module: str, action: str) -> Callable[..., RequestAuthz]:
    """
    Per-route alternative to YAML rules:

        @router.put("/users/{user_id}/cities", dependencies=[Depends(authorize("users", "write"))])
    """

    def dependency(
        request: Request,
        config: SecurityConfig = Depends(get_security_config),
        access: AccessControl = Depends(get_access_control),
        source: SqlGrantSource = Depends(get_grant_source),
        settings: Settings = Depends(get_settings),
    ) -> RequestAuthz:
        authz = _ensure_authz(request, config, settings)
        _check_permission(authz, module, action, access, source)
        return authz

    return dependency
