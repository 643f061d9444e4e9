"""
Pytest fixtures for the test suite.

Data-layer and API tests use an in-memory SQLite engine and a session that rolls
back after each test. Engine-level tests use ``FakeGrantSource`` instead of a DB.
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from scopeauth.security.errors import ScopeResolutionError
from scopeauth.security.grants import CityRow, GrantRow


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from scopeauth.db.base import Base
    from scopeauth.models import access, reports  # noqa: F401  (register tables)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    Code under test may call ``commit()``; the outer transaction is still rolled
    back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def seeded(db_session):
    """
    Known demo data with fixed ids.

    cities: 1 Pune, 2 Mumbai, 3 Delhi
    zones:  10 Kothrud(1), 20 Andheri(2), 21 Bandra(2), 30 Dwarka(3)
    users:
        1 admin
        2 city_manager role (reports:write, users:view); cities 1,2; zones 10,20,21
        3 analyst role (reports:view); cities 2,3; zones 20,30
        4 direct reports:view limited to city 2; cities 1,2; zone 20
        5 no permissions, no cities; zone 10
    reports: 100 (1/10), 101 (2/20), 102 (2/21), 103 (3/30)
    """
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

    db_session.add_all([City(id=1, name="Pune"), City(id=2, name="Mumbai"), City(id=3, name="Delhi")])
    db_session.flush()
    db_session.add_all(
        [
            Zone(id=10, name="Kothrud", city_id=1),
            Zone(id=20, name="Andheri", city_id=2),
            Zone(id=21, name="Bandra", city_id=2),
            Zone(id=30, name="Dwarka", city_id=3),
        ]
    )

    perms = {}
    for pid, key in enumerate(["reports:view", "reports:write", "users:view", "users:write", "permissions:write"], 1):
        module, action = key.split(":")
        perms[key] = Permission(id=pid, module=module, action=action)
    db_session.add_all(perms.values())
    db_session.flush()

    manager = Role(id=1, name="city_manager")
    manager.permissions.extend([perms["reports:write"], perms["users:view"]])
    analyst = Role(id=2, name="analyst")
    analyst.permissions.append(perms["reports:view"])
    db_session.add_all([manager, analyst])

    users = [
        User(id=1, username="admin", email="admin@example.com", role="admin"),
        User(id=2, username="manager", email="manager@example.com", role="staff"),
        User(id=3, username="analyst", email="analyst@example.com", role="staff"),
        User(id=4, username="field", email="field@example.com", role="staff"),
        User(id=5, username="nobody", email="nobody@example.com", role="staff"),
    ]
    users[1].roles.append(manager)
    users[2].roles.append(analyst)
    db_session.add_all(users)
    db_session.flush()

    db_session.add_all(
        UserCityAccess(user_id=u, city_id=c, granted_by=1)
        for u, c in [(2, 1), (2, 2), (3, 2), (3, 3), (4, 1), (4, 2)]
    )
    db_session.add(UserPermission(user_id=4, permission_id=perms["reports:view"].id, city_id=2))
    db_session.add_all(
        UserZoneAccess(user_id=u, zone_id=z)
        for u, z in [(2, 10), (2, 20), (2, 21), (3, 20), (3, 30), (4, 20), (5, 10)]
    )
    db_session.add_all(
        [
            Report(id=100, title="Pune weekly", city_id=1, zone_id=10),
            Report(id=101, title="Andheri footfall", city_id=2, zone_id=20),
            Report(id=102, title="Bandra inventory", city_id=2, zone_id=21),
            Report(id=103, title="Delhi monthly", city_id=3, zone_id=30),
        ]
    )
    db_session.commit()
    return db_session


class FakeGrantSource:
    """In-memory GrantSource that counts calls and can be told to fail."""

    def __init__(
        self,
        rows: dict[int, list[GrantRow]] | None = None,
        cities: dict[int, list[int]] | None = None,
        zones: dict[int, list[int]] | None = None,
        city_names: dict[int, str] | None = None,
    ) -> None:
        self.rows = rows or {}
        self.cities = cities or {}
        self.zones = zones or {}
        self.city_names = city_names or {}
        self.calls: Counter[str] = Counter()
        self.fail = False

    def _hit(self, name: str) -> None:
        self.calls[name] += 1
        if self.fail:
            raise ScopeResolutionError(f"{name} unavailable")

    def permission_rows(self, user_id: int) -> list[GrantRow]:
        self._hit("permission_rows")
        return list(self.rows.get(user_id, []))

    def city_ids(self, user_id: int) -> list[int]:
        self._hit("city_ids")
        return list(self.cities.get(user_id, []))

    def cities_for_user(self, user_id: int) -> list[CityRow]:
        self._hit("cities_for_user")
        rows = [CityRow(id=c, name=self.city_names.get(c, f"city-{c}")) for c in self.cities.get(user_id, [])]
        return sorted(rows, key=lambda r: r.name)

    def all_cities(self) -> list[CityRow]:
        self._hit("all_cities")
        return sorted((CityRow(id=c, name=n) for c, n in self.city_names.items()), key=lambda r: r.name)

    def zone_ids(self, user_id: int) -> list[int]:
        self._hit("zone_ids")
        return list(self.zones.get(user_id, []))

    def replace_city_access(self, user_id: int, city_ids: Sequence[int], granted_by: int | None) -> None:
        self._hit("replace_city_access")
        self.cities[user_id] = list(city_ids)


@pytest.fixture
def fake_source():
    return FakeGrantSource()


def make_token(user_id, role: str | None = None, **extra) -> str:
    from scopeauth.settings import get_settings

    settings = get_settings()
    payload = {"user_id": user_id, **extra}
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_header(user_id, role: str | None = "staff") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def source_factory():
    return FakeGrantSource


@pytest.fixture
def headers():
    """``headers(user_id, role="staff")`` -> Authorization header with a signed actor token."""
    return auth_header
