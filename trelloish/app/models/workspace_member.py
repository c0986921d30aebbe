"""
models/workspace_member.py — WorkspaceMember junction table definition.

No business logic. No imports from services or routes.

UNIQUE(workspace_id, user_id): a user holds at most one role per workspace.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trelloish.app.extensions import db
from trelloish.app.models.enums import WorkspaceRole, enum_values


class WorkspaceMember(db.Model):
    __tablename__ = "workspace_members"

    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    workspace_id: Mapped[int] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ON DELETE RESTRICT: a user holding a role cannot be deleted.
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    role: Mapped[WorkspaceRole] = mapped_column(
        Enum(
            WorkspaceRole,
            name="workspace_role_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=WorkspaceRole.MEMBER,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="workspace_memberships",
    )

    workspace: Mapped["Workspace"] = relationship(  # noqa: F821
        "Workspace",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<WorkspaceMember workspace_id={self.workspace_id} "
            f"user_id={self.user_id} "
            f"role={self.role.value}>"
        )
