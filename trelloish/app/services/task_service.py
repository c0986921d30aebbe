"""
services/task_service.py — Tasks, assignees, and their side effects.

Authorization:
  - List / get:  any project role, or the workspace OWNER
  - Create:      PROJECT_LEAD or CONTRIBUTOR
  - Update:      PROJECT_LEAD on any task; CONTRIBUTOR only while the task
                 is unassigned or they are among its assignees
  - Delete:      PROJECT_LEAD or the workspace OWNER

Side effects, in the same unit of work as the task write:
  - every newly assigned user (except the actor) gets a Notification
  - a status change is published as TaskStatusChanged to the workspace's
    event subscribers, restricted to its current members

Assignees must hold a role in the task's project (ASSIGNEE_NOT_MEMBER, 422).

Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from trelloish.app.clock import isoformat, utcnow
from trelloish.app.errors import AppError, ErrorCode, forbidden
from trelloish.app.models.enums import RelatedEntityType, TaskStatus
from trelloish.app.models.project import Project
from trelloish.app.models.project_member import ProjectMember
from trelloish.app.models.task import Task, TaskAssignee
from trelloish.app.services import authorization_service as authz
from trelloish.app.services import notification_service, project_service, workspace_service
from trelloish.app.services.audit_service import AuditSink
from trelloish.app.services.event_service import TaskEventBroadcaster, TaskStatusChanged


# ── Private helpers ────────────────────────────────────────────────────────

def _get_task_or_404(task_id: int, session: Session) -> Task:
    task = session.get(Task, task_id)
    if task is None:
        raise AppError(
            ErrorCode.TASK_NOT_FOUND,
            f"Task {task_id} does not exist.",
            404,
        )
    return task


def _validate_assignees(project_id: int, assignee_ids: Iterable[int], session: Session) -> set[int]:
    """Returns the ids as a set, or raises ASSIGNEE_NOT_MEMBER naming the first stranger."""
    wanted = set(assignee_ids)
    if not wanted:
        return wanted

    members = set(session.execute(
        select(ProjectMember.user_id).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id.in_(wanted),
        )
    ).scalars().all())

    strangers = sorted(wanted - members)
    if strangers:
        raise AppError(
            ErrorCode.ASSIGNEE_NOT_MEMBER,
            f"User {strangers[0]} is not a member of project {project_id}.",
            422,
            field="assignee_ids",
        )
    return wanted


def _notify_assigned(task: Task, user_ids: Iterable[int], actor_id: int, session: Session) -> None:
    for user_id in sorted(user_ids):
        if user_id == actor_id:
            continue
        notification_service.create_notification(
            recipient_id=user_id,
            title="New task assigned",
            body=f'You have been assigned to "{task.title}".',
            session=session,
            related_entity_id=task.id,
            related_entity_type=RelatedEntityType.TASK,
        )


def build_task_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "project_id": task.project_id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "created_by": task.created_by,
        "assignee_ids": task.assignee_ids,
        "created_at": isoformat(task.created_at),
        "updated_at": isoformat(task.updated_at),
    }


# ── Public service functions ───────────────────────────────────────────────

def list_tasks(project_id: int, caller_id: int, session: Session) -> list[dict]:
    project = project_service.get_project_or_404(project_id, session)
    if not project_service.can_view(caller_id, project, session):
        raise forbidden("Forbidden: You do not have permission to view this project.")

    tasks = session.execute(
        select(Task)
        .where(Task.project_id == project_id)
        .order_by(Task.created_at.asc(), Task.id.asc())
    ).scalars().all()
    return [build_task_dict(t) for t in tasks]


def get_task(task_id: int, caller_id: int, session: Session) -> dict:
    task = _get_task_or_404(task_id, session)
    if not project_service.can_view(caller_id, task.project, session):
        raise forbidden("Forbidden: You do not have permission to view this task.")
    return build_task_dict(task)


def create_task(
        project_id: int,
        caller_id: int,
        title: str,
        session: Session,
        audit: AuditSink,
        description: str | None = None,
        status: TaskStatus = TaskStatus.TODO,
        assignee_ids: Iterable[int] = (),
) -> dict:
    """
    Creates a task with its assignees and their notifications.

    Raises:
      AppError(PROJECT_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)            — caller is not LEAD or CONTRIBUTOR
      AppError(ASSIGNEE_NOT_MEMBER, 422)
    """
    project_service.get_project_or_404(project_id, session)
    if not authz.can_edit_task(caller_id, project_id, session):
        raise forbidden("Forbidden: Only project leads and contributors can create tasks.")

    assignees = _validate_assignees(project_id, assignee_ids, session)

    task = Task(
        project_id=project_id,
        title=title.strip(),
        description=description,
        status=status,
        created_by=caller_id,
    )
    session.add(task)
    session.flush()  # populate task.id for assignees and notifications

    for user_id in sorted(assignees):
        task.assignees.append(TaskAssignee(task_id=task.id, user_id=user_id))
    session.flush()

    _notify_assigned(task, assignees, caller_id, session)

    audit.activity(
        "TASK_CREATED",
        caller_id,
        {"project_id": project_id, "task_id": task.id, "assignee_ids": sorted(assignees)},
    )
    return build_task_dict(task)


def update_task(
        task_id: int,
        caller_id: int,
        changes: dict,
        session: Session,
        audit: AuditSink,
        events: TaskEventBroadcaster,
) -> dict:
    """
    Applies a partial update. `changes` may hold title, description,
    status and assignee_ids; absent keys are left alone. assignee_ids
    replaces the whole set.

    Raises:
      AppError(TASK_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(ASSIGNEE_NOT_MEMBER, 422)
    """
    task = _get_task_or_404(task_id, session)

    role = authz.get_project_role(caller_id, task.project_id, session)
    if not authz.can_edit_task(caller_id, task.project_id, session):
        raise forbidden("Forbidden: Only project leads and contributors can edit tasks.")
    if not authz.role_may_edit_task(role, caller_id, task.assignee_ids):
        raise forbidden("Forbidden: Contributors can only edit tasks that are unassigned or assigned to them.")

    old_status = task.status
    newly_assigned: set[int] = set()

    if "assignee_ids" in changes:
        wanted = _validate_assignees(task.project_id, changes["assignee_ids"], session)
        current = set(task.assignee_ids)
        newly_assigned = wanted - current
        task.assignees = [a for a in task.assignees if a.user_id in wanted]
        for user_id in sorted(newly_assigned):
            task.assignees.append(TaskAssignee(task_id=task.id, user_id=user_id))

    if "title" in changes:
        task.title = changes["title"].strip()
    if "description" in changes:
        task.description = changes["description"]
    if "status" in changes:
        task.status = changes["status"]

    task.updated_at = utcnow()
    session.flush()

    _notify_assigned(task, newly_assigned, caller_id, session)

    audit.activity(
        "TASK_UPDATED",
        caller_id,
        {"task_id": task.id, "fields": sorted(changes)},
    )

    if task.status != old_status:
        project: Project = task.project
        events.publish(
            TaskStatusChanged(
                task_id=task.id,
                project_id=project.id,
                workspace_id=project.workspace_id,
                old_status=old_status.value,
                new_status=task.status.value,
                title=task.title,
                changed_by=caller_id,
            ),
            audience=workspace_service.list_member_ids(project.workspace_id, session),
        )

    return build_task_dict(task)


def delete_task(task_id: int, caller_id: int, session: Session, audit: AuditSink) -> None:
    task = _get_task_or_404(task_id, session)
    if not project_service.can_manage(caller_id, task.project, session):
        raise forbidden("Forbidden: Only the project lead or workspace owner can delete tasks.")

    project_id = task.project_id
    session.delete(task)
    session.flush()

    audit.activity("TASK_DELETED", caller_id, {"task_id": task_id, "project_id": project_id})
