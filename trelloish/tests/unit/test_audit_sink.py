"""
Unit tests for AuditSink: writer dispatch, failure isolation, default JSON output.
"""

from __future__ import annotations

import json
import logging

from trelloish.app.services.audit_service import AUDIT_LOGGER_NAME, AuditLevel, AuditSink


def test_helpers_set_level_and_defaults():
    events = []
    sink = AuditSink(writer=events.append)

    sink.security("LOGIN_FAILURE", 3, "10.0.0.1", {"email": "a@test.com"})
    sink.activity("WORKSPACE_CREATED", 3)

    assert [e.level for e in events] == [AuditLevel.SECURITY, AuditLevel.ACTIVITY]
    assert events[0].ip_address == "10.0.0.1"
    assert events[1].details == {}


def test_error_helper_records_exception_type():
    events = []
    AuditSink(writer=events.append).error("REFRESH_TOKEN_ERROR", error=RuntimeError("db down"))

    assert events[0].details == {"error_type": "RuntimeError", "error_message": "db down"}


def test_broken_writer_does_not_raise(caplog):
    def explode(event):
        raise OSError("disk full")

    with caplog.at_level(logging.ERROR, logger="trelloish.app.services.audit_service"):
        AuditSink(writer=explode).security("LOGIN_FAILURE", 1)

    assert "Failed to write audit event LOGIN_FAILURE" in caplog.text


def test_default_writer_emits_json(caplog):
    with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER_NAME):
        AuditSink().security("ADMIN_USER_BANNED", 1, None, {"target_user_id": 2})

    [record] = [r for r in caplog.records if r.name == AUDIT_LOGGER_NAME]
    assert record.levelno == logging.WARNING
    body = json.loads(record.getMessage())
    assert body["action"] == "ADMIN_USER_BANNED"
    assert body["level"] == "security"
    assert body["details"] == {"target_user_id": 2}
