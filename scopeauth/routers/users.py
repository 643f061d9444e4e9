from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from scopeauth.schemas.access import (
    ActorOut,
    AllowedCitiesOut,
    CityAccessSyncIn,
    CityAccessSyncOut,
    CityOut,
    PermissionsOut,
    ScopeOut,
)
from scopeauth.security.context import Actor, RequestAuthz
from scopeauth.security.dependencies import authorize, get_access_control, get_current_actor, get_grant_source
from scopeauth.security.errors import ScopeResolutionError
from scopeauth.security.grants import SqlGrantSource
from scopeauth.security.service import AccessControl

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


@router.get("/me", response_model=ActorOut)
def me(actor: Actor = Depends(get_current_actor)) -> Actor:
    return actor


@router.get("/me/permissions", response_model=PermissionsOut)
def my_permissions(
    actor: Actor = Depends(get_current_actor),
    access: AccessControl = Depends(get_access_control),
    source: SqlGrantSource = Depends(get_grant_source),
) -> PermissionsOut:
    if actor.has_role(access.admin_role):
        return PermissionsOut(user_id=actor.id, all=True)

    bundle = access.resolve_permissions(actor, source)
    return PermissionsOut(
        user_id=actor.id,
        permissions={
            key: ScopeOut(all=scope.all, ids=sorted(scope.ids))
            for key, scope in sorted(bundle.city_scope_by_key.items())
        },
    )


@router.get("/users/allowed-cities", response_model=AllowedCitiesOut)
def allowed_cities(
    actor: Actor = Depends(get_current_actor),
    access: AccessControl = Depends(get_access_control),
    source: SqlGrantSource = Depends(get_grant_source),
) -> AllowedCitiesOut:
    try:
        record = access.fetch_city_access(actor, source, include_cities=True)
    except ScopeResolutionError:
        logger.exception("Failed to fetch allowed cities user_id=%s", actor.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unable to fetch allowed cities.")

    cities = [CityOut(id=c.id, name=c.name) for c in record.cities or ()]
    if record.all:
        return AllowedCitiesOut(all=True, cities=cities)

    if not cities:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No city access assigned. Please contact admin.",
        )
    return AllowedCitiesOut(all=False, cities=cities)


@router.put("/users/{user_id}/cities", response_model=CityAccessSyncOut)
def sync_user_cities(
    user_id: int,
    payload: CityAccessSyncIn,
    authz: RequestAuthz = Depends(authorize("users", "write")),
    access: AccessControl = Depends(get_access_control),
    source: SqlGrantSource = Depends(get_grant_source),
) -> CityAccessSyncOut:
    try:
        ids = access.sync_city_access(source, user_id, payload.city_ids, granted_by=authz.actor.id)
    except ScopeResolutionError:
        logger.exception("City access sync failed user_id=%s", user_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unable to update city access.")
    return CityAccessSyncOut(user_id=user_id, city_ids=ids)
