"""Pytest configuration and shared fixtures."""

import os

# Module-level settings (API app, Celery app) must never reach a real database or broker
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFICATION_BACKEND", "none")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import clearance.db.models  # noqa: F401  registers tables on Base.metadata
from clearance.api.main import create_app
from clearance.core.config import Settings
from clearance.core.workflow import (
    ProgressProjector,
    Stage,
    StageCatalog,
    SubmissionStore,
    WorkflowEngine,
)
from clearance.db.base import Base
from clearance.db.session import build_session_factory


class RecordingSink:
    """Notification sink that keeps every notification it receives."""

    def __init__(self, fail: bool = False):
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    def notify(self, recipient_id, title, message, severity, metadata) -> None:
        self.calls.append({
            "recipient_id": recipient_id,
            "title": title,
            "message": message,
            "severity": severity,
            "metadata": metadata,
        })
        if self.fail:
            raise RuntimeError("sink unavailable")

    def titles(self) -> List[str]:
        return [call["title"] for call in self.calls]

    def for_recipient(self, recipient_id: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["recipient_id"] == recipient_id]


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session of a test."""
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
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def abc_catalog() -> StageCatalog:
    """Three stages: A gates both B and C."""
    return StageCatalog([
        Stage(id="A", display_name="Stage A", order=1),
        Stage(id="B", display_name="Stage B", order=2, prerequisites=frozenset({"A"})),
        Stage(id="C", display_name="Stage C", order=3, prerequisites=frozenset({"A"})),
    ])


@pytest.fixture
def scoped_catalog() -> StageCatalog:
    """A scope-bound gate stage followed by an ungated-by-scope stage."""
    return StageCatalog.fan_out([
        Stage(id="hod", display_name="Head of Department", order=1, scope_required=True),
        Stage(id="library", display_name="Library", order=2, aliases=("librarian",)),
    ])


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> RecordingSink:
    return RecordingSink(fail=True)


@pytest.fixture
def store(session_factory) -> SubmissionStore:
    return SubmissionStore(session_factory)


@pytest.fixture
def engine(abc_catalog, store, sink) -> WorkflowEngine:
    return WorkflowEngine(abc_catalog, store, sink)


@pytest.fixture
def projector(engine) -> ProgressProjector:
    return engine.projector


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite://",
        notification_backend="none",
        log_dir=str(tmp_path / "logs"),
        file_logging=False,
        webhook_max_retries=2,
        webhook_retry_backoff=0,
        webhook_timeout=5,
    )


@pytest.fixture
def app(test_settings, session_factory, abc_catalog, sink):
    return create_app(test_settings, session_factory=session_factory, catalog=abc_catalog, sink=sink)


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client
