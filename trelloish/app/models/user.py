"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

Users are never hard-deleted by the API. global_status is changed only by
an ADMIN through the admin endpoints, never by the user themself.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trelloish.app.extensions import db
from trelloish.app.models.enums import UserStatus, enum_values


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        # Also enforced by the marshmallow Email field.
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    global_status: Mapped[UserStatus] = mapped_column(
        Enum(
            UserStatus,
            name="user_global_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=UserStatus.ACTIVE,
        server_default=UserStatus.ACTIVE.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────
    # Read-only navigation.

    devices: Mapped[list["UserDevice"]] = relationship(  # noqa: F821
        "UserDevice",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    reset_tokens: Mapped[list["PasswordResetToken"]] = relationship(  # noqa: F821
        "PasswordResetToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    workspace_memberships: Mapped[list["WorkspaceMember"]] = relationship(  # noqa: F821
        "WorkspaceMember",
        back_populates="user",
    )

    project_memberships: Mapped[list["ProjectMember"]] = relationship(  # noqa: F821
        "ProjectMember",
        back_populates="user",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email!r} status={self.global_status.value}>"
