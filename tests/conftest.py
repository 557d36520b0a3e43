"""Pytest configuration and shared fixtures."""

import os

# Must be set before sopgate reads its settings
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

from typing import Any, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from sopgate.api.main import create_app
from sopgate.core.approval import ApprovalEngine
from sopgate.core.auth import AttemptLimiter
from sopgate.core.config import get_settings
from sopgate.db import session as db_module
from sopgate.db.session import build_engine, build_sessionmaker, init_db
from sopgate.services.notifications import Notifier, NotificationEvent


class RecordingNotifier(Notifier):
    """Keeps notifications in memory instead of sending them."""

    def __init__(self):
        self.sent: List[Tuple[str, NotificationEvent, Dict[str, Any]]] = []

    def notify(self, recipient, subject_context, template_context) -> None:
        self.sent.append((recipient, NotificationEvent(subject_context), dict(template_context)))

    def events(self) -> List[NotificationEvent]:
        return [event for _, event, _ in self.sent]


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite database per test so threads share real locking."""
    engine = build_engine(f"sqlite:///{tmp_path / 'sopgate-test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_sessionmaker(db_engine)


@pytest.fixture(autouse=True)
def _use_test_database(monkeypatch, session_factory):
    """Point workers and API dependencies at the per-test database."""
    monkeypatch.setattr(db_module, "SessionLocal", session_factory)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def audit_retries():
    """Audit entries handed to the retry path."""
    return []


@pytest.fixture
def approval_engine(db_session, notifier, audit_retries, settings):
    return ApprovalEngine(db_session, notifier, settings=settings, audit_retry=audit_retries.append)


@pytest.fixture
def app(notifier, settings):
    return create_app(settings=settings, notifier=notifier, attempt_limiter=AttemptLimiter())


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
