"""
services/authorization_service.py — Role resolution and capability checks.

Read-only. Answers "no" with None / False and never raises; callers decide
whether a "no" is an error (and which message it gets).

Two independent role scopes:
  workspace: OWNER > MEMBER > VIEWER
  project:   PROJECT_LEAD > CONTRIBUTOR > PROJECT_VIEWER

Capabilities (all False when the user holds no role):
  can_view_workspace              any workspace role
  can_manage_workspace            OWNER
  can_edit_projects_in_workspace  OWNER, MEMBER
  can_view_project                any project role
  can_manage_project              PROJECT_LEAD
  can_edit_task                   PROJECT_LEAD, CONTRIBUTOR

is_admin is a global override used only by the admin user endpoints.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from trelloish.app.models.enums import ProjectRole, UserStatus, WorkspaceRole
from trelloish.app.models.project_member import ProjectMember
from trelloish.app.models.workspace_member import WorkspaceMember

_WORKSPACE_PROJECT_EDITORS = frozenset({WorkspaceRole.OWNER, WorkspaceRole.MEMBER})
_TASK_EDITORS = frozenset({ProjectRole.PROJECT_LEAD, ProjectRole.CONTRIBUTOR})


# ── Workspace scope ────────────────────────────────────────────────────────

def get_workspace_role(user_id: int, workspace_id: int, session: Session) -> WorkspaceRole | None:
    return session.execute(
        select(WorkspaceMember.role).where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.workspace_id == workspace_id,
        )
    ).scalar_one_or_none()


def can_view_workspace(user_id: int, workspace_id: int, session: Session) -> bool:
    return get_workspace_role(user_id, workspace_id, session) is not None


def can_manage_workspace(user_id: int, workspace_id: int, session: Session) -> bool:
    return get_workspace_role(user_id, workspace_id, session) == WorkspaceRole.OWNER


def can_edit_projects_in_workspace(user_id: int, workspace_id: int, session: Session) -> bool:
    return get_workspace_role(user_id, workspace_id, session) in _WORKSPACE_PROJECT_EDITORS


def is_workspace_member(user_id: int, workspace_id: int, session: Session) -> bool:
    """Hard precondition for joining any project of the workspace."""
    return can_view_workspace(user_id, workspace_id, session)


# ── Project scope ──────────────────────────────────────────────────────────

def get_project_role(user_id: int, project_id: int, session: Session) -> ProjectRole | None:
    return session.execute(
        select(ProjectMember.role).where(
            ProjectMember.user_id == user_id,
            ProjectMember.project_id == project_id,
        )
    ).scalar_one_or_none()


def can_view_project(user_id: int, project_id: int, session: Session) -> bool:
    return get_project_role(user_id, project_id, session) is not None


def can_manage_project(user_id: int, project_id: int, session: Session) -> bool:
    return get_project_role(user_id, project_id, session) == ProjectRole.PROJECT_LEAD


def can_edit_task(user_id: int, project_id: int, session: Session) -> bool:
    return get_project_role(user_id, project_id, session) in _TASK_EDITORS


def role_may_edit_task(role: ProjectRole | None, user_id: int, assignee_ids: Iterable[int]) -> bool:
    """
    Task-level narrowing on top of can_edit_task.

    A PROJECT_LEAD may edit any task of the project. A CONTRIBUTOR may edit
    a task only while it is unassigned or they are one of its assignees.
    """
    if role == ProjectRole.PROJECT_LEAD:
        return True
    if role == ProjectRole.CONTRIBUTOR:
        assignees = set(assignee_ids)
        return not assignees or user_id in assignees
    return False


# ── Global ─────────────────────────────────────────────────────────────────

def is_admin(status: UserStatus | str | None) -> bool:
    return status == UserStatus.ADMIN
