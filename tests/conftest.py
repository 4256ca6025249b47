"""Shared fixtures: an in-memory database, users, a populated group and an API client."""

import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tontine.core.security import create_access_token
from tontine.db.base import get_db
from tontine.models import Base
from tontine.services.auth import create_user
from tontine.services.cache import query_cache
from tontine.services.group import add_member, create_group

PASSWORD = "password123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def _clean_cache():
    query_cache.clear()
    yield
    query_cache.clear()


@pytest.fixture(autouse=True)
def _audit_logs(tmp_path, monkeypatch):
    monkeypatch.setattr("tontine.core.audit.LOGS_DIR", tmp_path / "logs")
    return tmp_path / "logs"


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        return create_user(
            db,
            email=email or f"user{n}@example.com",
            password=PASSWORD,
            name=name or f"User {n}",
        )

    return _make


@pytest.fixture
def members(make_user):
    """Admin first, then three plain members, in joining order."""
    return [make_user(name=name) for name in ("Ada", "Ben", "Cleo", "Dev")]


@pytest.fixture
def admin(members):
    return members[0]


@pytest.fixture
def group(db, members):
    admin_user = members[0]
    group = create_group(
        db,
        created_by=admin_user.id,
        name="Savers",
        contribution_amount=Decimal("50.00"),
        max_members=5,
    )
    for user in members[1:]:
        add_member(db, group.id, added_by=admin_user.id, user_id=user.id)
    return group


@pytest.fixture
def client(session_factory):
    from tontine.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
