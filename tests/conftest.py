# tests/conftest.py

import os

# Keep the app module from pointing its default engine at a live Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from ticket_allocator.application.allocation_engine import AllocationEngine
from ticket_allocator.api.routes.routes import get_allocation_engine
from ticket_allocator.infrastructure.db.models import Base
from ticket_allocator.infrastructure.db.session import build_engine, build_session_factory
from ticket_allocator.infrastructure.locking.event_lock import EventLock
from ticket_allocator.main import app


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'allocator.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def event_lock():
    return EventLock(timeout=5.0, max_pending=1000)


@pytest.fixture
def allocation_engine(session_factory, event_lock):
    return AllocationEngine(session_factory=session_factory, event_lock=event_lock)


@pytest.fixture
def client(allocation_engine):
    app.dependency_overrides[get_allocation_engine] = lambda: allocation_engine
    yield TestClient(app)
    app.dependency_overrides.clear()
