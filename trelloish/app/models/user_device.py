"""
models/user_device.py — UserDevice (login session) table definition.

No business logic. No imports from services or routes.

One row per login. The primary key is a random UUID generated by the
session registry before the insert, because the refresh token that embeds
it has to be signed first.

Lifecycle:
  - created on register/login
  - refresh_token_hash / expires_at rotate IN PLACE on refresh (same id)
  - is_revoked flips to TRUE on logout, hash mismatch, or invalid user
  - never physically deleted by the API

FK policy: user_id ON DELETE CASCADE — sessions are owned by the user.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trelloish.app.extensions import db


class UserDevice(db.Model):
    __tablename__ = "user_devices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # SHA-256 hex digest of the current refresh token, never the token itself.
    refresh_token_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    is_revoked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="devices",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<UserDevice id={self.id} "
            f"user_id={self.user_id} "
            f"revoked={self.is_revoked}>"
        )
