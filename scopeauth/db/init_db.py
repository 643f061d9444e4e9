from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from scopeauth.db.base import Base
from scopeauth.db.session import SessionLocal, engine
from scopeauth.models.access import (
    City,
    Permission,
    Role,
    User,
    UserCityAccess,
    UserPermission,
    UserZoneAccess,
    Zone,
)
from scopeauth.models.reports import Report


def init_db() -> None:
    """
    Create tables + seed demo data.

    Small and deterministic so the scoping behavior can be tried without setup.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(City.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    # Cities and zones
    pune = City(name="Pune")
    mumbai = City(name="Mumbai")
    delhi = City(name="Delhi")
    db.add_all([pune, mumbai, delhi])
    db.flush()

    kothrud = Zone(name="Kothrud", city_id=pune.id)
    andheri = Zone(name="Andheri", city_id=mumbai.id)
    bandra = Zone(name="Bandra", city_id=mumbai.id)
    dwarka = Zone(name="Dwarka", city_id=delhi.id)
    db.add_all([kothrud, andheri, bandra, dwarka])
    db.flush()

    # Permission catalog
    perms = {
        key: Permission(module=key.split(":")[0], action=key.split(":")[1])
        for key in (
            "reports:view",
            "reports:write",
            "users:view",
            "users:write",
            "permissions:write",
        )
    }
    db.add_all(perms.values())
    db.flush()

    # Roles
    manager = Role(name="city_manager", description="Manages reports in assigned cities")
    manager.permissions.extend([perms["reports:write"], perms["users:view"]])
    analyst = Role(name="analyst", description="Reads reports")
    analyst.permissions.append(perms["reports:view"])
    db.add_all([manager, analyst])
    db.flush()

    # Users
    u1 = User(username="alice_admin", email="alice.admin@example.com", role="admin")
    u2 = User(username="manoj_mgr", email="manoj.mgr@example.com", role="staff")
    u2.roles.append(manager)
    u3 = User(username="asha_analyst", email="asha.analyst@example.com", role="staff")
    u3.roles.append(analyst)
    u4 = User(username="vikram_field", email="vikram.field@example.com", role="staff")
    db.add_all([u1, u2, u3, u4])
    db.flush()

    # Base city access
    db.add_all(
        [
            UserCityAccess(user_id=u2.id, city_id=pune.id, granted_by=u1.id),
            UserCityAccess(user_id=u2.id, city_id=mumbai.id, granted_by=u1.id),
            UserCityAccess(user_id=u3.id, city_id=mumbai.id, granted_by=u1.id),
            UserCityAccess(user_id=u3.id, city_id=delhi.id, granted_by=u1.id),
            UserCityAccess(user_id=u4.id, city_id=pune.id, granted_by=u1.id),
            UserCityAccess(user_id=u4.id, city_id=mumbai.id, granted_by=u1.id),
        ]
    )

    # Direct grant narrowed to a single city
    db.add(UserPermission(user_id=u4.id, permission_id=perms["reports:view"].id, city_id=mumbai.id))

    # Zone access
    db.add_all(
        [
            UserZoneAccess(user_id=u2.id, zone_id=kothrud.id),
            UserZoneAccess(user_id=u2.id, zone_id=andheri.id),
            UserZoneAccess(user_id=u2.id, zone_id=bandra.id),
            UserZoneAccess(user_id=u3.id, zone_id=andheri.id),
            UserZoneAccess(user_id=u3.id, zone_id=dwarka.id),
            UserZoneAccess(user_id=u4.id, zone_id=andheri.id),
        ]
    )

    # Reports
    db.add_all(
        [
            Report(title="Pune weekly summary", city_id=pune.id, zone_id=kothrud.id, created_by=u1.id),
            Report(title="Andheri footfall", city_id=mumbai.id, zone_id=andheri.id, created_by=u1.id),
            Report(title="Bandra inventory", city_id=mumbai.id, zone_id=bandra.id, created_by=u1.id),
            Report(title="Delhi monthly summary", city_id=delhi.id, zone_id=dwarka.id, created_by=u1.id),
        ]
    )

    db.commit()
