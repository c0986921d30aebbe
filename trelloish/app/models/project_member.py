"""
models/project_member.py — ProjectMember junction table definition.

No business logic. No imports from services or routes.

UNIQUE(project_id, user_id): a user holds at most one role per project.
A row may only be inserted for a user who already holds a role in the
project's parent workspace; project_service checks that before the insert.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trelloish.app.extensions import db
from trelloish.app.models.enums import ProjectRole, enum_values


class ProjectMember(db.Model):
    __tablename__ = "project_members"

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    role: Mapped[ProjectRole] = mapped_column(
        Enum(
            ProjectRole,
            name="project_role_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=ProjectRole.CONTRIBUTOR,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="project_memberships",
    )

    project: Mapped["Project"] = relationship(  # noqa: F821
        "Project",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ProjectMember project_id={self.project_id} "
            f"user_id={self.user_id} "
            f"role={self.role.value}>"
        )
