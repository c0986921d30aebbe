"""
services/audit_service.py — Audit sink for security and activity events.

Every security-relevant outcome (login failure, ban hit, refresh-token
reuse, device revocation, role change, admin action) is recorded here
BEFORE the error propagates to the transport layer.

Rules:
  - Recording never fails the caller. A broken writer is caught and the
    failure is logged on the application logger.
  - Recording is never skipped on the success path either: services call
    the sink unconditionally, not inside `if` branches on log level.

The default writer emits one JSON object per event on the
"trelloish.audit" logger. The app factory attaches a rotating file handler
to that logger when AUDIT_LOG_PATH is configured.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from trelloish.app.clock import utcnow

AUDIT_LOGGER_NAME = "trelloish.audit"

logger = logging.getLogger(__name__)


class AuditLevel(str, enum.Enum):
    SECURITY = "security"
    ACTIVITY = "activity"
    INFO     = "info"
    ERROR    = "error"


_LOG_LEVELS = {
    AuditLevel.SECURITY: logging.WARNING,
    AuditLevel.ACTIVITY: logging.INFO,
    AuditLevel.INFO:     logging.INFO,
    AuditLevel.ERROR:    logging.ERROR,
}


@dataclass(frozen=True)
class AuditEvent:
    level: AuditLevel
    action: str
    user_id: int | None = None
    ip_address: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "action": self.action,
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "details": self.details,
        }


def _log_writer(event: AuditEvent) -> None:
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    audit_logger.log(
        _LOG_LEVELS[event.level],
        json.dumps(event.to_dict(), default=str, sort_keys=True),
    )


class AuditSink:

    def __init__(self, writer: Callable[[AuditEvent], None] | None = None) -> None:
        self._writer = writer or _log_writer

    def record(self, event: AuditEvent) -> None:
        try:
            self._writer(event)
        except Exception:
            logger.exception(
                "Failed to write audit event %s (user_id=%s)",
                event.action,
                event.user_id,
            )

    # ── Helpers per level ──────────────────────────────────────────────────

    def security(
            self,
            action: str,
            user_id: int | None = None,
            ip_address: str | None = None,
            details: dict[str, Any] | None = None,
    ) -> None:
        self.record(AuditEvent(AuditLevel.SECURITY, action, user_id, ip_address, details or {}))

    def activity(
            self,
            action: str,
            user_id: int | None,
            details: dict[str, Any] | None = None,
    ) -> None:
        self.record(AuditEvent(AuditLevel.ACTIVITY, action, user_id, None, details or {}))

    def info(
            self,
            action: str,
            user_id: int | None = None,
            ip_address: str | None = None,
            details: dict[str, Any] | None = None,
    ) -> None:
        self.record(AuditEvent(AuditLevel.INFO, action, user_id, ip_address, details or {}))

    def error(
            self,
            action: str,
            user_id: int | None = None,
            ip_address: str | None = None,
            details: dict[str, Any] | None = None,
            error: BaseException | None = None,
    ) -> None:
        payload = dict(details or {})
        if error is not None:
            payload["error_type"] = type(error).__name__
            payload["error_message"] = str(error)
        self.record(AuditEvent(AuditLevel.ERROR, action, user_id, ip_address, payload))
