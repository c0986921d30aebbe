"""
services/project_service.py — Projects and project membership.

Authorization:
  - Create:               workspace OWNER or MEMBER; creator becomes PROJECT_LEAD
  - List in workspace:    any workspace role
  - Get / members:        any project role, or the workspace OWNER
  - Update / delete / manage members: PROJECT_LEAD or the workspace OWNER

Membership precondition:
  A user can only join a project if they already hold a role in the parent
  workspace. This is checked before anything else about the insert, so a
  non-member is refused with NOT_WORKSPACE_MEMBER (422) no matter who asks.

Lead lock-in:
  The PROJECT_LEAD cannot be removed or demoted, and PROJECT_LEAD cannot be
  granted to a second member (LEAD_LOCKED, 422).

Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from trelloish.app.clock import isoformat
from trelloish.app.errors import AppError, ErrorCode, forbidden
from trelloish.app.models.enums import ProjectRole
from trelloish.app.models.project import Project
from trelloish.app.models.project_member import ProjectMember
from trelloish.app.models.user import User
from trelloish.app.services import authorization_service as authz
from trelloish.app.services.audit_service import AuditSink
from trelloish.app.services.workspace_service import get_workspace_or_404


# ── Private helpers ────────────────────────────────────────────────────────

def get_project_or_404(project_id: int, session: Session) -> Project:
    project = session.get(Project, project_id)
    if project is None:
        raise AppError(
            ErrorCode.PROJECT_NOT_FOUND,
            f"Project {project_id} does not exist.",
            404,
        )
    return project


def _get_membership(project_id: int, user_id: int, session: Session) -> ProjectMember | None:
    return session.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def can_manage(caller_id: int, project: Project, session: Session) -> bool:
    """PROJECT_LEAD of the project, or OWNER of its workspace."""
    return (
        authz.can_manage_project(caller_id, project.id, session)
        or authz.can_manage_workspace(caller_id, project.workspace_id, session)
    )


def can_view(caller_id: int, project: Project, session: Session) -> bool:
    return (
        authz.can_view_project(caller_id, project.id, session)
        or authz.can_manage_workspace(caller_id, project.workspace_id, session)
    )


def _require_manager(caller_id: int, project: Project, session: Session, message: str) -> None:
    if not can_manage(caller_id, project, session):
        raise forbidden(message)


def _reject_lead_grant(role: ProjectRole) -> None:
    if role == ProjectRole.PROJECT_LEAD:
        raise AppError(
            ErrorCode.LEAD_LOCKED,
            "A project has exactly one lead. Lead transfer is not supported.",
            422,
            field="role",
        )


def _build_project_dict(project: Project, role: ProjectRole | None = None) -> dict:
    payload = {
        "id": project.id,
        "workspace_id": project.workspace_id,
        "name": project.name,
        "created_at": isoformat(project.created_at),
    }
    if role is not None:
        payload["role"] = role.value
    return payload


def _build_member_dict(member: ProjectMember, user: User) -> dict:
    return {
        "project_id": member.project_id,
        "user_id": user.id,
        "email": user.email,
        "role": member.role.value,
        "joined_at": isoformat(member.joined_at),
    }


# ── Projects ───────────────────────────────────────────────────────────────

def create_project(
        workspace_id: int,
        name: str,
        creator_id: int,
        session: Session,
        audit: AuditSink,
) -> dict:
    """
    Creates a project and the creator's PROJECT_LEAD row together.

    Raises:
      AppError(WORKSPACE_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — VIEWERs and non-members cannot create projects
    """
    get_workspace_or_404(workspace_id, session)
    if not authz.can_edit_projects_in_workspace(creator_id, workspace_id, session):
        raise forbidden("Forbidden: Only workspace owners and members can create projects.")

    project = Project(workspace_id=workspace_id, name=name.strip())
    session.add(project)
    session.flush()  # populate project.id before creating the membership

    session.add(ProjectMember(
        project_id=project.id,
        user_id=creator_id,
        role=ProjectRole.PROJECT_LEAD,
    ))
    session.flush()

    audit.activity(
        "PROJECT_CREATED",
        creator_id,
        {"workspace_id": workspace_id, "project_id": project.id, "name": project.name},
    )
    return _build_project_dict(project, ProjectRole.PROJECT_LEAD)


def list_projects(workspace_id: int, caller_id: int, session: Session) -> list[dict]:
    """Every project of the workspace, with the caller's project role where they have one."""
    get_workspace_or_404(workspace_id, session)
    if not authz.can_view_workspace(caller_id, workspace_id, session):
        raise forbidden("Forbidden: You do not have permission to view this workspace.")

    rows = session.execute(
        select(Project, ProjectMember.role)
        .outerjoin(
            ProjectMember,
            (ProjectMember.project_id == Project.id) & (ProjectMember.user_id == caller_id),
        )
        .where(Project.workspace_id == workspace_id)
        .order_by(Project.created_at.asc(), Project.id.asc())
    ).all()
    return [_build_project_dict(project, role) for project, role in rows]


def get_project(project_id: int, caller_id: int, session: Session) -> dict:
    project = get_project_or_404(project_id, session)
    if not can_view(caller_id, project, session):
        raise forbidden("Forbidden: You do not have permission to view this project.")

    payload = _build_project_dict(project, authz.get_project_role(caller_id, project_id, session))
    payload["members"] = list_members(project_id, caller_id, session)
    return payload


def update_project(
        project_id: int,
        caller_id: int,
        name: str,
        session: Session,
        audit: AuditSink,
) -> dict:
    project = get_project_or_404(project_id, session)
    _require_manager(caller_id, project, session, "Forbidden: Only the project lead or workspace owner can update this project.")

    old_name = project.name
    project.name = name.strip()
    session.flush()

    audit.activity(
        "PROJECT_UPDATED",
        caller_id,
        {"project_id": project_id, "old_name": old_name, "new_name": project.name},
    )
    return _build_project_dict(project)


def delete_project(project_id: int, caller_id: int, session: Session, audit: AuditSink) -> None:
    """Deletes the project with its memberships and tasks."""
    project = get_project_or_404(project_id, session)
    _require_manager(caller_id, project, session, "Forbidden: Only the project lead or workspace owner can delete this project.")

    workspace_id = project.workspace_id
    session.delete(project)
    session.flush()

    audit.activity("PROJECT_DELETED", caller_id, {"project_id": project_id, "workspace_id": workspace_id})


# ── Membership ─────────────────────────────────────────────────────────────

def list_members(project_id: int, caller_id: int, session: Session) -> list[dict]:
    project = get_project_or_404(project_id, session)
    if not can_view(caller_id, project, session):
        raise forbidden("Forbidden: You do not have permission to view this project.")

    rows = session.execute(
        select(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at.asc(), ProjectMember.id.asc())
    ).all()
    return [_build_member_dict(member, user) for member, user in rows]


def add_member(
        project_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
        audit: AuditSink,
        role: ProjectRole = ProjectRole.CONTRIBUTOR,
) -> dict:
    """
    Adds a workspace member to the project.

    Raises:
      AppError(PROJECT_NOT_FOUND, 404)
      AppError(USER_NOT_FOUND, 404)
      AppError(NOT_WORKSPACE_MEMBER, 422) — target holds no workspace role
      AppError(FORBIDDEN, 403)
      AppError(LEAD_LOCKED, 422)          — role PROJECT_LEAD requested
      AppError(ALREADY_MEMBER, 409)
    """
    project = get_project_or_404(project_id, session)

    target = session.get(User, target_user_id)
    if target is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} not found.",
            404,
            field="user_id",
        )

    if not authz.is_workspace_member(target_user_id, project.workspace_id, session):
        raise AppError(
            ErrorCode.NOT_WORKSPACE_MEMBER,
            "User must be a member of the workspace before joining one of its projects.",
            422,
            field="user_id",
        )

    _require_manager(caller_id, project, session, "Forbidden: Only the project lead or workspace owner can add members.")
    _reject_lead_grant(role)

    if _get_membership(project_id, target_user_id, session) is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            "User is already a member of this project.",
            409,
        )

    member = ProjectMember(project_id=project_id, user_id=target_user_id, role=role)
    session.add(member)
    session.flush()

    audit.activity(
        "PROJECT_MEMBER_ADDED",
        caller_id,
        {"project_id": project_id, "target_user_id": target_user_id, "role": role.value},
    )
    return _build_member_dict(member, target)


def remove_member(
        project_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
        audit: AuditSink,
) -> None:
    project = get_project_or_404(project_id, session)
    _require_manager(caller_id, project, session, "Forbidden: Only the project lead or workspace owner can remove members.")

    member = _get_membership(project_id, target_user_id, session)
    if member is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of project {project_id}.",
            404,
        )
    if member.role == ProjectRole.PROJECT_LEAD:
        raise AppError(
            ErrorCode.LEAD_LOCKED,
            "Cannot remove the project lead. Lead transfer is not supported.",
            422,
        )

    session.delete(member)
    session.flush()

    audit.activity(
        "PROJECT_MEMBER_REMOVED",
        caller_id,
        {"project_id": project_id, "target_user_id": target_user_id},
    )


def update_member_role(
        project_id: int,
        caller_id: int,
        target_user_id: int,
        new_role: ProjectRole,
        session: Session,
        audit: AuditSink,
) -> dict:
    project = get_project_or_404(project_id, session)
    _require_manager(caller_id, project, session, "Forbidden: Only the project lead or workspace owner can update member roles.")

    member = _get_membership(project_id, target_user_id, session)
    if member is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of project {project_id}.",
            404,
        )
    if member.role == ProjectRole.PROJECT_LEAD:
        raise AppError(
            ErrorCode.LEAD_LOCKED,
            "Cannot change the role of the project lead. Lead transfer is not supported.",
            422,
        )
    _reject_lead_grant(new_role)

    old_role = member.role
    member.role = new_role
    session.flush()

    audit.activity(
        "PROJECT_MEMBER_ROLE_UPDATED",
        caller_id,
        {
            "project_id": project_id,
            "target_user_id": target_user_id,
            "old_role": old_role.value,
            "new_role": new_role.value,
        },
    )
    return _build_member_dict(member, session.get(User, target_user_id))
