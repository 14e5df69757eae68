"""
Pytest configuration and shared fixtures.

Tests run against an in-memory SQLite database with SAVEPOINT support; the
application engine is never connected and the scheduler never starts.
"""

import os
import sys
from pathlib import Path

# Add project root to sys.path so we can import domain, services, etc.
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from adapters import catalog_adapter, push_adapter
from app import clock
from app.config import settings
from domain.models import Base, get_db_session
from test_fixtures import FROZEN_NOW


def _sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        # pysqlite's implicit BEGIN breaks SAVEPOINT handling
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
def db_session():
    """Fresh schema per test"""
    engine = _sqlite_engine()
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, future=True, expire_on_commit=False)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    """TestClient bound to the test session (lifespan is not run)"""
    from main import app

    app.dependency_overrides[get_db_session] = lambda: db_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    """Business clock pinned to 09:00 Asia/Riyadh on FROZEN_NOW's date"""
    monkeypatch.setattr(clock, "utcnow", lambda: FROZEN_NOW)
    return FROZEN_NOW


@pytest.fixture(autouse=True)
def offline_adapters(monkeypatch):
    """No catalog, no push gateway, no webhook secret unless a test opts in"""
    monkeypatch.setattr(catalog_adapter, "_db", None)
    monkeypatch.setattr(settings, "push_gateway_url", None)
    monkeypatch.setattr(settings, "moyasar_webhook_secret", None)
    push_adapter.configure(None)
    yield
    push_adapter.configure(None)
