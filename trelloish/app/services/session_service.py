"""
services/session_service.py — Device/session registry.

One user_devices row per login. The row id is the device id embedded in
every refresh token minted for that session, and it stays the same across
rotations: a "session" outlives many short-lived refresh tokens.

Only the SHA-256 hash of the current refresh token is stored.

A row is live while is_revoked = FALSE AND expires_at > now. Revocation is
terminal; expiry is reached passively.

Commits are the route's job; this module only flushes.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from trelloish.app.clock import utcnow
from trelloish.app.models.user_device import UserDevice
from trelloish.app.services.audit_service import AuditSink
from trelloish.app.services.token_service import TokenCodec, hash_token


def create_session(
        user_id: int,
        codec: TokenCodec,
        session: Session,
        ip_address: str | None = None,
        user_agent: str | None = None,
) -> tuple[str, str]:
    """
    Opens a new device session and returns (refresh_token, device_id).

    The raw refresh token is returned to the caller once and never stored.
    """
    device_id = str(uuid.uuid4())
    now = utcnow()
    refresh_token = codec.issue_refresh_token(user_id, device_id, now=now)

    session.add(UserDevice(
        id=device_id,
        user_id=user_id,
        refresh_token_hash=hash_token(refresh_token),
        ip_address=ip_address,
        user_agent=user_agent,
        is_revoked=False,
        expires_at=codec.refresh_expiry(now),
    ))
    session.flush()

    return refresh_token, device_id


def find_active_session(device_id: str, user_id: int, session: Session) -> UserDevice | None:
    return session.execute(
        select(UserDevice).where(
            UserDevice.id == device_id,
            UserDevice.user_id == user_id,
            UserDevice.is_revoked.is_(False),
            UserDevice.expires_at > utcnow(),
        )
    ).scalar_one_or_none()


def rotate_session(
        device_id: str,
        old_hash: str,
        new_hash: str,
        new_expiry: datetime,
        session: Session,
        ip_address: str | None = None,
        user_agent: str | None = None,
) -> bool:
    """
    Replaces the stored refresh-token hash in place, keyed on the OLD hash.

    The UPDATE only matches while the row still holds `old_hash` and is not
    revoked, so of two concurrent refreshes presenting the same token exactly
    one rotates. Returns False for the loser.

    ip_address / user_agent are only overwritten when provided.
    """
    values: dict = {
        "refresh_token_hash": new_hash,
        "expires_at": new_expiry,
    }
    if ip_address:
        values["ip_address"] = ip_address
    if user_agent:
        values["user_agent"] = user_agent

    result = session.execute(
        update(UserDevice)
        .where(
            UserDevice.id == device_id,
            UserDevice.refresh_token_hash == old_hash,
            UserDevice.is_revoked.is_(False),
        )
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def revoke_session(user_id: int, device_id: str, session: Session, audit: AuditSink) -> None:
    """Marks the session revoked and expired. Idempotent."""
    session.execute(
        update(UserDevice)
        .where(
            UserDevice.id == device_id,
            UserDevice.user_id == user_id,
        )
        .values(is_revoked=True, expires_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    session.flush()
    audit.activity("DEVICE_REVOKED", user_id, {"device_id": device_id})
