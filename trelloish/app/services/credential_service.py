"""
services/credential_service.py — Credential store.

Responsibilities:
  - User creation with a salted bcrypt password hash
  - Password verification and password updates
  - Password-reset token issuance and single-use consumption

Reset-token policy:
  - At most one live token per user: issuing deletes the user's older rows.
  - Tokens expire after PASSWORD_RESET_TOKEN_EXPIRES (1 hour).
  - Only a bcrypt hash is stored. Salted hashes cannot be looked up by
    value, so consumption scans the live rows and compares each one.
  - Unknown emails yield None silently; the route answers with the same
    message either way.

current_app.config is read ONLY for BCRYPT_LOG_ROUNDS and the reset-token
lifetime, with defaults when no app context is active (unit tests).
Commits are the route's job; this module only flushes.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

import bcrypt
from flask import current_app, has_app_context
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trelloish.app.clock import utcnow
from trelloish.app.errors import AppError, ErrorCode
from trelloish.app.models.password_reset_token import PasswordResetToken
from trelloish.app.models.user import User
from trelloish.app.services.audit_service import AuditSink

DEFAULT_BCRYPT_ROUNDS = 10
DEFAULT_RESET_TOKEN_TTL = timedelta(hours=1)


# ── Private helpers ────────────────────────────────────────────────────────

def _bcrypt_rounds() -> int:
    if has_app_context():
        return current_app.config.get("BCRYPT_LOG_ROUNDS", DEFAULT_BCRYPT_ROUNDS)
    return DEFAULT_BCRYPT_ROUNDS


def _reset_token_ttl() -> timedelta:
    if has_app_context():
        return current_app.config.get("PASSWORD_RESET_TOKEN_EXPIRES", DEFAULT_RESET_TOKEN_TTL)
    return DEFAULT_RESET_TOKEN_TTL


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ── Passwords ──────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(
        plain.encode("utf-8"),
        bcrypt.gensalt(rounds=_bcrypt_rounds()),
    ).decode("utf-8")


def verify_password(plain: str, password_hash: str) -> bool:
    """bcrypt.checkpw compares in constant time. A malformed hash is a mismatch."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# ── Users ──────────────────────────────────────────────────────────────────

def find_user_by_email(email: str, session: Session) -> User | None:
    return session.execute(
        select(User).where(User.email == normalize_email(email))
    ).scalar_one_or_none()


def create_user(email: str, password: str, session: Session) -> User:
    """
    Creates a user with status ACTIVE.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — email already registered
    """
    email = normalize_email(email)
    if find_user_by_email(email, session) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            "User with this email already exists.",
            409,
            field="email",
        )

    user = User(email=email, password_hash=hash_password(password))
    session.add(user)
    try:
        session.flush()  # populate user.id before sessions are created
    except IntegrityError:
        # A concurrent registration won the unique index.
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            "User with this email already exists.",
            409,
            field="email",
        )
    return user


def update_password(user: User, new_password: str, session: Session, audit: AuditSink) -> None:
    user.password_hash = hash_password(new_password)
    session.flush()
    audit.activity("PASSWORD_UPDATE", user.id)


# ── Password reset tokens ──────────────────────────────────────────────────

def issue_password_reset_token(email: str, session: Session, audit: AuditSink) -> str | None:
    """
    Issues a fresh reset token for `email` and returns the raw value once.

    Returns None when no such user exists. Any earlier token for the user
    is deleted first, so only the newest one can be consumed.
    """
    user = find_user_by_email(email, session)
    if user is None:
        return None

    session.execute(
        delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id)
    )

    raw_token = secrets.token_urlsafe(32)
    token_hash = bcrypt.hashpw(
        raw_token.encode("utf-8"),
        bcrypt.gensalt(rounds=_bcrypt_rounds()),
    ).decode("utf-8")

    session.add(PasswordResetToken(
        user_id=user.id,
        token_hash=token_hash,
        expires_at=utcnow() + _reset_token_ttl(),
    ))
    session.flush()

    audit.info("PASSWORD_RESET_REQUEST", user.id, details={"email": user.email})
    return raw_token


def consume_reset_token(
        raw_token: str,
        new_password: str,
        session: Session,
        audit: AuditSink,
) -> bool:
    """
    Sets a new password using a reset token. Single use.

    Returns False when the token matches no live row.
    """
    live_tokens = session.execute(
        select(PasswordResetToken).where(PasswordResetToken.expires_at > utcnow())
    ).scalars().all()

    match = None
    for stored in live_tokens:
        if verify_password(raw_token, stored.token_hash):
            match = stored
            break

    if match is None:
        audit.security("PASSWORD_RESET_FAILURE", details={"reason": "no_matching_token"})
        return False

    user = session.get(User, match.user_id)
    if user is None:
        return False

    update_password(user, new_password, session, audit)
    session.execute(
        delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id)
    )
    session.flush()

    audit.activity("PASSWORD_RESET_SUCCESS", user.id)
    return True
