from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from scopeauth.schemas.access import PermissionGrantIn, PermissionGrantOut
from scopeauth.security.context import permission_key
from scopeauth.security.dependencies import authorize, get_access_control, get_grant_source
from scopeauth.security.grants import SqlGrantSource
from scopeauth.security.service import AccessControl

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(authorize("permissions", "write"))],
)


def _lookup(source: SqlGrantSource, dto: PermissionGrantIn):
    permission = source.find_permission(dto.module, dto.action)
    if permission is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown permission {permission_key(dto.module, dto.action)!r}",
        )
    return permission


@router.post("/users/{user_id}/permissions", response_model=PermissionGrantOut)
def grant_permission(
    user_id: int,
    dto: PermissionGrantIn,
    access: AccessControl = Depends(get_access_control),
    source: SqlGrantSource = Depends(get_grant_source),
) -> PermissionGrantOut:
    permission = _lookup(source, dto)
    changed = source.grant_permission(user_id, permission, dto.city_id)
    access.invalidate_permission_cache()
    return PermissionGrantOut(user_id=user_id, permission=permission.key, city_id=dto.city_id, changed=changed)


@router.delete("/users/{user_id}/permissions", response_model=PermissionGrantOut)
def revoke_permission(
    user_id: int,
    dto: PermissionGrantIn,
    access: AccessControl = Depends(get_access_control),
    source: SqlGrantSource = Depends(get_grant_source),
) -> PermissionGrantOut:
    permission = _lookup(source, dto)
    removed = source.revoke_permission(user_id, permission, dto.city_id)
    access.invalidate_permission_cache()
    return PermissionGrantOut(user_id=user_id, permission=permission.key, city_id=dto.city_id, changed=removed > 0)
