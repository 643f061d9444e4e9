"""
Grant source: the read/write interface the permission engine needs from storage.

The engine only depends on the ``GrantSource`` protocol. ``SqlGrantSource`` is the
SQLAlchemy implementation, bound to one request-scoped Session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import Integer, cast, delete, null, select, union_all
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scopeauth.models.access import (
    City,
    Permission,
    UserCityAccess,
    UserPermission,
    UserZoneAccess,
    role_permissions,
    user_roles,
)
from scopeauth.security.errors import ScopeResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrantRow:
    """One ``(module, action, city_id)`` row; ``city_id`` None = every city."""

    module: str
    action: str
    city_id: int | None = None


@dataclass(frozen=True)
class CityRow:
    id: int
    name: str


class GrantSource(Protocol):
    def permission_rows(self, user_id: int) -> Sequence[GrantRow]: ...

    def city_ids(self, user_id: int) -> Sequence[int]: ...

    def cities_for_user(self, user_id: int) -> Sequence[CityRow]: ...

    def all_cities(self) -> Sequence[CityRow]: ...

    def zone_ids(self, user_id: int) -> Sequence[int]: ...

    def replace_city_access(self, user_id: int, city_ids: Sequence[int], granted_by: int | None) -> None: ...


@contextmanager
def _loading(what: str, user_id: int | None = None) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise ScopeResolutionError(f"Failed to load {what} for user_id={user_id}") from exc


class SqlGrantSource:
    def __init__(self, db: Session) -> None:
        self.db = db

    def permission_rows(self, user_id: int) -> list[GrantRow]:
        # Role-inherited grants carry no city restriction: NULL city_id.
        via_roles = (
            select(Permission.module, Permission.action, cast(null(), Integer).label("city_id"))
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
            .where(user_roles.c.user_id == user_id)
        )
        direct = (
            select(Permission.module, Permission.action, UserPermission.city_id.label("city_id"))
            .join(UserPermission, UserPermission.permission_id == Permission.id)
            .where(UserPermission.user_id == user_id)
        )

        with _loading("permissions", user_id):
            rows = self.db.execute(union_all(via_roles, direct)).all()
        return [GrantRow(module=r.module, action=r.action, city_id=r.city_id) for r in rows]

    def city_ids(self, user_id: int) -> list[int]:
        with _loading("city access", user_id):
            return list(self.db.scalars(select(UserCityAccess.city_id).where(UserCityAccess.user_id == user_id)))

    def cities_for_user(self, user_id: int) -> list[CityRow]:
        stmt = (
            select(City.id, City.name)
            .join(UserCityAccess, UserCityAccess.city_id == City.id)
            .where(UserCityAccess.user_id == user_id)
            .order_by(City.name.asc())
        )
        with _loading("city metadata", user_id):
            return [CityRow(id=r.id, name=r.name) for r in self.db.execute(stmt)]

    def all_cities(self) -> list[CityRow]:
        with _loading("cities"):
            return [CityRow(id=r.id, name=r.name) for r in self.db.execute(select(City.id, City.name).order_by(City.name.asc()))]

    def zone_ids(self, user_id: int) -> list[int]:
        with _loading("zone access", user_id):
            return list(self.db.scalars(select(UserZoneAccess.zone_id).where(UserZoneAccess.user_id == user_id)))

    def replace_city_access(self, user_id: int, city_ids: Sequence[int], granted_by: int | None) -> None:
        """Delete-then-insert the full city set for ``user_id``; ids must already be de-duplicated."""

        now = datetime.utcnow()
        with _loading("city access replacement", user_id):
            try:
                self.db.execute(delete(UserCityAccess).where(UserCityAccess.user_id == user_id))
                self.db.add_all(
                    UserCityAccess(user_id=user_id, city_id=city_id, granted_at=now, granted_by=granted_by)
                    for city_id in city_ids
                )
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
        logger.info("City access replaced user_id=%s cities=%s granted_by=%s", user_id, list(city_ids), granted_by)

    # ---- Direct permission grants (admin mutations) -----------------------------------

    def find_permission(self, module: str, action: str) -> Permission | None:
        with _loading("permission definition"):
            return self.db.scalars(
                select(Permission).where(Permission.module == module.lower(), Permission.action == action.lower())
            ).first()

    def grant_permission(self, user_id: int, permission: Permission, city_id: int | None) -> bool:
        """Add a direct grant. Returns False when an identical grant already exists."""

        existing = select(UserPermission.id).where(
            UserPermission.user_id == user_id,
            UserPermission.permission_id == permission.id,
            UserPermission.city_id.is_(None) if city_id is None else UserPermission.city_id == city_id,
        )
        with _loading("permission grant", user_id):
            if self.db.execute(existing).first() is not None:
                return False
            self.db.add(UserPermission(user_id=user_id, permission_id=permission.id, city_id=city_id))
            self.db.commit()
        logger.info("Permission granted user_id=%s permission=%s city_id=%s", user_id, permission.key, city_id)
        return True

    def revoke_permission(self, user_id: int, permission: Permission, city_id: int | None) -> int:
        """Remove matching direct grants; ``city_id`` None removes the unrestricted grant only."""

        stmt = delete(UserPermission).where(
            UserPermission.user_id == user_id,
            UserPermission.permission_id == permission.id,
            UserPermission.city_id.is_(None) if city_id is None else UserPermission.city_id == city_id,
        )
        with _loading("permission revoke", user_id):
            removed = self.db.execute(stmt).rowcount or 0
            self.db.commit()
        logger.info("Permission revoked user_id=%s permission=%s city_id=%s rows=%s", user_id, permission.key, city_id, removed)
        return removed
