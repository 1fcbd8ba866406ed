from __future__ import annotations

import os
import uuid
from typing import Callable, Generator

# Configure the app before any threadspire module reads the environment.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-0123456789")
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from threadspire import models  # noqa: E402
from threadspire.auth import create_access_token  # noqa: E402
from threadspire.db import Base  # noqa: E402
from threadspire.deps import get_db  # noqa: E402
from threadspire.main import app  # noqa: E402
from threadspire.services import threads  # noqa: E402


@pytest.fixture()
def session_factory() -> Generator[sessionmaker, None, None]:
    """A fresh in-memory database per test, shared by every session."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def other_user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def auth_headers() -> Callable[[uuid.UUID], dict[str, str]]:
    """Build a Bearer header for a user id."""

    def _headers(user_id: uuid.UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers


@pytest.fixture()
def make_thread(db: Session, user_id: uuid.UUID) -> Callable[..., models.Thread]:
    """Create a thread through the content store and return the ORM row."""

    def _make(title: str = "A thread", segments=("first", "second"), owner=None, **kwargs):
        detail = threads.create_thread(
            db,
            owner or user_id,
            title=title,
            segments=list(segments),
            **kwargs,
        )
        return db.get(models.Thread, detail.id)

    return _make
