"""
errors.py — AppError base class and error code registry.

Every error returned by the Trelloish API uses a code defined here.
Services raise AppError; routes never catch it. The global handler in
app/__init__.py turns it into the JSON error envelope.

Never conflate 401 (we do not know who you are) with 403 (we know, and
you are not allowed).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


def forbidden(message: str) -> AppError:
    """403 with a message that names the role the caller is missing."""
    return AppError(ErrorCode.FORBIDDEN, message, 403)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# These are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_MEMBER             = "ALREADY_MEMBER"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    WORKSPACE_NOT_FOUND        = "WORKSPACE_NOT_FOUND"
    PROJECT_NOT_FOUND          = "PROJECT_NOT_FOUND"
    TASK_NOT_FOUND             = "TASK_NOT_FOUND"
    NOTIFICATION_NOT_FOUND     = "NOTIFICATION_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    NOT_WORKSPACE_MEMBER       = "NOT_WORKSPACE_MEMBER"   # project member must be in workspace
    ASSIGNEE_NOT_MEMBER        = "ASSIGNEE_NOT_MEMBER"    # assignee must be in project
    OWNER_LOCKED               = "OWNER_LOCKED"           # no ownership transfer
    LEAD_LOCKED                = "LEAD_LOCKED"            # no leadership transfer
    SELF_ADMIN_ACTION          = "SELF_ADMIN_ACTION"      # admin acting on own account
    RESET_TOKEN_INVALID        = "RESET_TOKEN_INVALID"

    # ── Auth Errors ────────────────────────────────────────────────────────
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    ACCOUNT_BANNED             = "ACCOUNT_BANNED"         # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    REFRESH_TOKEN_MISSING      = "REFRESH_TOKEN_MISSING"  # 401
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 403
    REFRESH_TOKEN_MISMATCH     = "REFRESH_TOKEN_MISMATCH" # 403
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
