"""
models/task.py — Task and TaskAssignee table definitions.

No business logic. No imports from services or routes.

TaskAssignee rows are owned by their task (ON DELETE CASCADE) and are
replaced as a set when a task's assignee list is updated.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trelloish.app.extensions import db
from trelloish.app.models.enums import TaskStatus, enum_values


class Task(db.Model):
    __tablename__ = "tasks"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_tasks_title_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[TaskStatus] = mapped_column(
        Enum(
            TaskStatus,
            name="task_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=TaskStatus.TODO,
        server_default=TaskStatus.TODO.value,
    )

    created_by: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    project: Mapped["Project"] = relationship(  # noqa: F821
        "Project",
        back_populates="tasks",
    )

    assignees: Mapped[list["TaskAssignee"]] = relationship(
        "TaskAssignee",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def assignee_ids(self) -> list[int]:
        return sorted(a.user_id for a in self.assignees)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Task id={self.id} "
            f"project_id={self.project_id} "
            f"status={self.status.value}>"
        )


class TaskAssignee(db.Model):
    __tablename__ = "task_assignees"

    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_assignees_task_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    task: Mapped["Task"] = relationship(
        "Task",
        back_populates="assignees",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<TaskAssignee task_id={self.task_id} user_id={self.user_id}>"
