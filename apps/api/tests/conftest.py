from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

import pytest

os.environ.setdefault("LOBOHUB_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("LOBOHUB_REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("LOBOHUB_JWT_SECRET", "test-secret-with-at-least-thirty-two-bytes")
os.environ.setdefault("LOBOHUB_APP_ENV", "test")
os.environ.setdefault("LOBOHUB_TIMEZONE", "UTC")

from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from lobohub import models  # noqa: E402,F401
from lobohub.db.base import Base  # noqa: E402
from lobohub.models import Family, User  # noqa: E402


@pytest.fixture()
def db() -> Iterator[Session]:
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT support.
    @event.listens_for(engine, "connect")
    def _disable_autobegin(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    session = Session(bind=engine, autoflush=False, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def family(db: Session) -> Family:
    row = Family(name="Lobo", invite_code="LOBO1234")
    db.add(row)
    db.flush()
    return row


@pytest.fixture()
def user(db: Session, family: Family) -> User:
    row = User(email="parent@test.com", name="Parent", password_hash="x", family_id=family.id)
    db.add(row)
    db.flush()
    return row

