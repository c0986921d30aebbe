"""
services/auth_service.py — Authentication protocol.

Orchestrates register / login / refresh / logout over the credential
store, the token codec and the session registry.

Session states per device:
  ACTIVE  → ROTATED (still active, new hash, same device id) → REVOKED
  EXPIRED is reached passively when expires_at elapses.

Error contract:
  - register/login/change_password raise AppError for protocol violations
    (DUPLICATE_EMAIL, INVALID_CREDENTIALS, ACCOUNT_BANNED).
  - refresh_access_token returns None for the whole "log in again" family:
    invalid token, no live session, hash mismatch, invalid user, lost
    rotation race. Callers cannot tell attack detection from plain expiry;
    only the audit log can.

Every security-relevant outcome is sent to the audit sink before the
error or None goes back to the caller.

Layer rules:
  - No flask.request, flask.g, or HTTP status codes beyond AppError.
  - The codec and the audit sink are passed in by the route.
  - Commits are the route's responsibility — only flush here. Note that
    refresh failures may still have written a revocation; the route
    commits in that case too.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from trelloish.app.clock import isoformat
from trelloish.app.errors import AppError, ErrorCode
from trelloish.app.models.enums import UserStatus
from trelloish.app.models.user import User
from trelloish.app.services import credential_service, session_service
from trelloish.app.services.audit_service import AuditSink
from trelloish.app.services.token_service import TokenCodec, compare_token_hash, hash_token


# ── Private helpers ────────────────────────────────────────────────────────

def build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. Never includes the password hash."""
    return {
        "id": user.id,
        "email": user.email,
        "status": user.global_status.value,
        "created_at": isoformat(user.created_at),
    }


def _issue_token_pair(
        user: User,
        codec: TokenCodec,
        session: Session,
        ip_address: str | None,
        user_agent: str | None,
) -> dict:
    """
    Mints an access token from the user's CURRENT status and opens a new
    device session. Other sessions of the user are left untouched.
    """
    access_token = codec.issue_access_token(user.id, user.email, user.global_status)
    refresh_token, device_id = session_service.create_session(
        user.id,
        codec,
        session,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "device_id": device_id,
        "user": build_user_dict(user),
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        email: str,
        password: str,
        session: Session,
        codec: TokenCodec,
        audit: AuditSink,
        ip_address: str | None = None,
        user_agent: str | None = None,
) -> dict:
    """
    Creates a new account and logs it in on the calling device.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — email already registered

    Returns: {"user", "access_token", "refresh_token", "device_id"}
    """
    try:
        user = credential_service.create_user(email, password, session)
    except AppError as exc:
        audit.error(
            "REGISTER_FAILURE",
            ip_address=ip_address,
            details={"email": email, "reason": exc.code},
        )
        raise

    result = _issue_token_pair(user, codec, session, ip_address, user_agent)
    audit.info(
        "REGISTER_SUCCESS",
        user.id,
        ip_address,
        {"email": user.email, "device_id": result["device_id"]},
    )
    return result


def login_user(
        email: str,
        password: str,
        session: Session,
        codec: TokenCodec,
        audit: AuditSink,
        ip_address: str | None = None,
        user_agent: str | None = None,
) -> dict:
    """
    Validates credentials and opens a new device session.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — unknown email or wrong password.
        Same error for both to avoid account enumeration.
      AppError(ACCOUNT_BANNED, 401)      — global_status is BANNED in the DB.

    Returns: {"user", "access_token", "refresh_token", "device_id"}
    """
    user = credential_service.find_user_by_email(email, session)

    if user is None or not credential_service.verify_password(password, user.password_hash):
        audit.security(
            "LOGIN_FAILURE",
            user.id if user is not None else None,
            ip_address,
            {"email": email},
        )
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Invalid credentials.",
            401,
        )

    if user.global_status == UserStatus.BANNED:
        audit.security(
            "LOGIN_FAILURE_BANNED",
            user.id,
            ip_address,
            {"email": email, "status": UserStatus.BANNED.value},
        )
        raise AppError(
            ErrorCode.ACCOUNT_BANNED,
            "Your account has been banned.",
            401,
        )

    result = _issue_token_pair(user, codec, session, ip_address, user_agent)
    audit.activity(
        "LOGIN_SUCCESS",
        user.id,
        {
            "ip_address": ip_address,
            "user_agent": user_agent,
            "device_id": result["device_id"],
        },
    )
    return result


def refresh_access_token(
        raw_refresh_token: str,
        session: Session,
        codec: TokenCodec,
        audit: AuditSink,
        ip_address: str | None = None,
        user_agent: str | None = None,
) -> dict | None:
    """
    Exchanges a refresh token for a new access token AND a new refresh token
    bound to the same device id (rotation).

    A token that decodes to a live session but does not match its stored
    hash is treated as stolen: the session is revoked and None returned.

    Returns: {"user", "access_token", "refresh_token", "device_id"} or None.
    """
    payload = codec.verify_refresh_token(raw_refresh_token)
    if payload is None:
        audit.security(
            "REFRESH_TOKEN_INVALID",
            ip_address=ip_address,
            details={"reason": "malformed_or_expired"},
        )
        return None

    user_id, device_id = payload.user_id, payload.device_id

    device = session_service.find_active_session(device_id, user_id, session)
    if device is None:
        audit.security(
            "REFRESH_TOKEN_INVALID",
            user_id,
            ip_address,
            {"reason": "not_found_or_revoked", "device_id": device_id},
        )
        return None

    if not compare_token_hash(raw_refresh_token, device.refresh_token_hash):
        audit.security(
            "REFRESH_TOKEN_REUSE_DETECTED",
            user_id,
            ip_address,
            {"reason": "hash_mismatch", "device_id": device_id},
        )
        session_service.revoke_session(user_id, device_id, session, audit)
        return None

    user = session.get(User, user_id)
    if user is None or user.global_status == UserStatus.BANNED:
        audit.security(
            "REFRESH_TOKEN_FAILURE",
            user_id,
            ip_address,
            {"reason": "user_not_found_or_banned", "device_id": device_id},
        )
        session_service.revoke_session(user_id, device_id, session, audit)
        return None

    access_token = codec.issue_access_token(user.id, user.email, user.global_status)
    new_refresh_token = codec.issue_refresh_token(user.id, device_id)

    rotated = session_service.rotate_session(
        device_id,
        old_hash=hash_token(raw_refresh_token),
        new_hash=hash_token(new_refresh_token),
        new_expiry=codec.refresh_expiry(),
        session=session,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    if not rotated:
        # Another request rotated this token between our read and our write.
        audit.security(
            "REFRESH_TOKEN_REUSE_DETECTED",
            user_id,
            ip_address,
            {"reason": "concurrent_rotation", "device_id": device_id},
        )
        session_service.revoke_session(user_id, device_id, session, audit)
        return None

    audit.activity("TOKEN_REFRESH_SUCCESS", user.id, {"device_id": device_id})

    return {
        "access_token": access_token,
        "refresh_token": new_refresh_token,
        "device_id": device_id,
        "user": build_user_dict(user),
    }


def logout_user(
        user_id: int,
        device_id: str,
        session: Session,
        audit: AuditSink,
        ip_address: str | None = None,
) -> None:
    """Revokes the device session. Idempotent: revoking twice is a no-op."""
    session_service.revoke_session(user_id, device_id, session, audit)
    audit.activity("LOGOUT_SUCCESS", user_id, {"ip_address": ip_address, "device_id": device_id})


def get_current_user(user_id: int, session: Session) -> dict:
    """
    Returns the profile of the currently authenticated user.

    Raises:
      AppError(USER_NOT_FOUND, 404) — user_id from the token no longer exists.
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return build_user_dict(user)


def change_password(
        user_id: int,
        old_password: str,
        new_password: str,
        session: Session,
        audit: AuditSink,
        ip_address: str | None = None,
) -> dict:
    """
    Changes the caller's own password after checking the old one.

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(INVALID_CREDENTIALS, 401) — old password does not match
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )

    if not credential_service.verify_password(old_password, user.password_hash):
        audit.security(
            "UPDATE_PASSWORD_FAILURE",
            user.id,
            ip_address,
            {"reason": "incorrect_old_password"},
        )
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Incorrect old password.",
            401,
            field="old_password",
        )

    credential_service.update_password(user, new_password, session, audit)
    return build_user_dict(user)
