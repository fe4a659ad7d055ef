"""
Shared test fixtures.

Sets up an isolated test database so tests never touch
the real database. Each test gets fresh tables; nothing
persists between tests.
"""

import os

# The app must not start the reminder loop or echo codes by default
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pocket_ledger.main import app
from pocket_ledger.api.deps import get_clock
from pocket_ledger.clock import FrozenClock
from pocket_ledger.models import Base
from pocket_ledger.models.base import get_db
from pocket_ledger.services.ledger_service import LedgerService


# SQLite for tests: no external database needed.
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    # Threaded tests queue on the SQLite write lock
    connect_args={"check_same_thread": False, "timeout": 30},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

# 2024-03-15 09:00 UTC, a Friday
FROZEN_NOW = datetime(2024, 3, 15, 9, 0, 0)


@pytest.fixture(autouse=True)
def setup_database():
    """
    Create all tables and the system categories before each
    test, drop everything after.
    """
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        LedgerService(session).seed_system_categories()
        session.commit()
    finally:
        session.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return FrozenClock(FROZEN_NOW)


@pytest.fixture
def client(db_session, clock):
    """
    Provide a test client with the test database and a frozen
    clock, by overriding the get_db and get_clock dependencies.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def session_factory():
    """Session factory bound to the test database, for the scheduler."""
    return TestSessionLocal
