from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from scopeauth.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session.

    The permission engine never holds a session: each request wraps its own
    session in a ``SqlGrantSource`` and hands it to ``AccessControl`` calls.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
