"""
models/workspace.py — Workspace table definition.

No business logic. No imports from services or routes.

A workspace has no owner column: ownership is the OWNER row in
workspace_members, created together with the workspace.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trelloish.app.extensions import db


class Workspace(db.Model):
    __tablename__ = "workspaces"

    __table_args__ = (
        # Also enforced by the marshmallow schema; the schema is the primary gate.
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_workspaces_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    members: Mapped[list["WorkspaceMember"]] = relationship(  # noqa: F821
        "WorkspaceMember",
        back_populates="workspace",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    projects: Mapped[list["Project"]] = relationship(  # noqa: F821
        "Project",
        back_populates="workspace",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Workspace id={self.id} name={self.name!r}>"
