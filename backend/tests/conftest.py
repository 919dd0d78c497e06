"""
Test configuration and shared fixtures for the reservation test suite.

Each test gets its own in-memory SQLite database, created from the model
metadata. Tests that race several admissions against each other use a
file-backed database instead, so every worker thread gets its own
connection and the storage constraints arbitrate exactly as in production.
"""

import os
import pytest
from typing import Callable, Generator

from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core import config
from core.database import Base, build_engine, get_db

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
import models  # noqa: F401
from services.catalog_service import CatalogService, catalog_cache


# Test database URL (in-memory unless overridden)
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="function")
def db_engine() -> Generator[Engine, None, None]:
    """Fresh schema per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    else:
        engine = build_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the per-test engine."""
    factory = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def race_session_factory(tmp_path) -> Generator[Callable[[], Session], None, None]:
    """
    Session factory over a file-backed SQLite database.

    Use one session per worker thread; the sessions share nothing but the
    database file.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    yield factory

    engine.dispose()


@pytest.fixture(autouse=True)
def reset_catalog_cache():
    """The catalog cache is process-wide; never let it leak between databases."""
    catalog_cache.invalidate()
    yield
    catalog_cache.invalidate()


@pytest.fixture(autouse=True)
def disable_notification_webhook(monkeypatch):
    """No test talks to a real webhook unless it patches one in explicitly."""
    monkeypatch.setattr(config, "NOTIFICATION_WEBHOOK_URL", "")


@pytest.fixture
def seeded_catalog(db_session):
    """Projector (3/day), speaker (2/day) and auditorium."""
    return CatalogService.seed_default_kinds(db_session)


@pytest.fixture
def client(db_session) -> Generator[TestClient, None, None]:
    """API client whose requests all use the test session."""
    from main import app

    def override_get_db():
        return db_session
    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.pop(get_db, None)
