"""
tests/integration/conftest.py — Fixtures for all integration tests.

Design:
  - Each test gets its own app built with create_app("testing"): an
    in-memory SQLite database, bcrypt cost 4, and a recording audit sink.
  - Tables are created before the test and dropped after it, so tests are
    fully isolated.
  - Request helpers live in helpers.py as plain functions so they can be
    called with arbitrary arguments.
"""

from __future__ import annotations

import pytest

from trelloish.app import create_app
from trelloish.app.extensions import db as _db
from trelloish.app.services.audit_service import AuditSink
from trelloish.app.services.event_service import TaskEventBroadcaster


@pytest.fixture
def audit_events() -> list:
    """Every AuditEvent recorded during the test, in order."""
    return []


@pytest.fixture
def task_events() -> TaskEventBroadcaster:
    return TaskEventBroadcaster()


@pytest.fixture
def app(audit_events, task_events):
    flask_app = create_app(
        "testing",
        audit_sink=AuditSink(writer=audit_events.append),
        task_events=task_events,
    )

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client. Cookies persist across requests on one client."""
    return app.test_client()


@pytest.fixture
def make_client(app):
    """Factory for extra clients, one per simulated browser/device."""
    return app.test_client
