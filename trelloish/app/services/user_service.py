"""
services/user_service.py — Admin user management.

Only a caller whose status in the DB is ADMIN may use these functions; the
status snapshot inside the access token is not trusted here.

Self-protection:
  - an admin cannot ban themself
  - an admin cannot reset their own password through the admin path
    (they use update_password with their old password instead)
Both are rejected with SELF_ADMIN_ACTION (422).

A ban does not revoke sessions directly. Login refuses BANNED users, and
every refresh re-reads the status and revokes the session it came from.

Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from trelloish.app.errors import AppError, ErrorCode, forbidden
from trelloish.app.models.enums import UserStatus
from trelloish.app.models.user import User
from trelloish.app.services import authorization_service as authz
from trelloish.app.services import credential_service
from trelloish.app.services.audit_service import AuditSink
from trelloish.app.services.auth_service import build_user_dict


def _require_admin(caller_id: int, session: Session, message: str) -> User:
    caller = session.get(User, caller_id)
    if caller is None or not authz.is_admin(caller.global_status):
        raise forbidden(message)
    return caller


def _get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return user


def _status_action(old: UserStatus, new: UserStatus) -> str:
    if new == UserStatus.BANNED:
        return "ADMIN_USER_BANNED"
    if new == UserStatus.ADMIN:
        return "ADMIN_USER_PROMOTED"
    if old == UserStatus.BANNED:
        return "ADMIN_USER_UNBANNED"
    return "ADMIN_USER_DEMOTED"


def admin_update_user_status(
        caller_id: int,
        target_user_id: int,
        new_status: UserStatus,
        session: Session,
        audit: AuditSink,
        ip_address: str | None = None,
) -> dict:
    """
    Sets a user's global status.

    Raises:
      AppError(FORBIDDEN, 403)          — caller is not ADMIN
      AppError(SELF_ADMIN_ACTION, 422)  — admin tried to ban themself
      AppError(USER_NOT_FOUND, 404)
    """
    _require_admin(caller_id, session, "Forbidden: Only admins can update user status.")

    if caller_id == target_user_id and new_status == UserStatus.BANNED:
        audit.security(
            "ADMIN_SELF_BAN_REJECTED",
            caller_id,
            ip_address,
        )
        raise AppError(
            ErrorCode.SELF_ADMIN_ACTION,
            "Admin cannot ban themselves.",
            422,
            field="status",
        )

    target = _get_user_or_404(target_user_id, session)

    old_status = target.global_status
    if old_status != new_status:
        target.global_status = new_status
        session.flush()
        audit.security(
            _status_action(old_status, new_status),
            caller_id,
            ip_address,
            {
                "target_user_id": target.id,
                "old_status": old_status.value,
                "new_status": new_status.value,
            },
        )

    return build_user_dict(target)


def admin_reset_user_password(
        caller_id: int,
        target_user_id: int,
        new_password: str,
        session: Session,
        audit: AuditSink,
        ip_address: str | None = None,
) -> dict:
    """
    Raises:
      AppError(FORBIDDEN, 403)
      AppError(SELF_ADMIN_ACTION, 422)
      AppError(USER_NOT_FOUND, 404)
    """
    _require_admin(caller_id, session, "Forbidden: Only admins can reset user passwords.")

    if caller_id == target_user_id:
        raise AppError(
            ErrorCode.SELF_ADMIN_ACTION,
            "Admin cannot reset their own password using this function. Use update_password instead.",
            422,
        )

    target = _get_user_or_404(target_user_id, session)
    credential_service.update_password(target, new_password, session, audit)

    audit.security(
        "ADMIN_PASSWORD_RESET",
        caller_id,
        ip_address,
        {"target_user_id": target.id},
    )
    return build_user_dict(target)
