"""
services/workspace_service.py — Workspace and workspace-membership logic.

Authorization (via authorization_service):
  - Create:            any authenticated user; creator becomes OWNER
  - Get / members:     any workspace role
  - List all:          ADMIN only
  - Add / remove / change role of members: OWNER only

Owner lock-in:
  Ownership transfer is not supported. Removing the OWNER, changing the
  OWNER's role, or granting OWNER to anyone else is rejected with
  OWNER_LOCKED no matter who asks, and nothing is written.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from trelloish.app.clock import isoformat
from trelloish.app.errors import AppError, ErrorCode, forbidden
from trelloish.app.models.enums import WorkspaceRole
from trelloish.app.models.project import Project
from trelloish.app.models.project_member import ProjectMember
from trelloish.app.models.user import User
from trelloish.app.models.workspace import Workspace
from trelloish.app.models.workspace_member import WorkspaceMember
from trelloish.app.services import authorization_service as authz
from trelloish.app.services import credential_service
from trelloish.app.services.audit_service import AuditSink


# ── Private helpers ────────────────────────────────────────────────────────

def get_workspace_or_404(workspace_id: int, session: Session) -> Workspace:
    """Returns the Workspace or raises WORKSPACE_NOT_FOUND (404)."""
    workspace = session.get(Workspace, workspace_id)
    if workspace is None:
        raise AppError(
            ErrorCode.WORKSPACE_NOT_FOUND,
            f"Workspace {workspace_id} does not exist.",
            404,
        )
    return workspace


def _get_membership(workspace_id: int, user_id: int, session: Session) -> WorkspaceMember | None:
    return session.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def _require_owner(workspace_id: int, caller_id: int, session: Session, message: str) -> None:
    if not authz.can_manage_workspace(caller_id, workspace_id, session):
        raise forbidden(message)


def _reject_owner_grant(role: WorkspaceRole) -> None:
    if role == WorkspaceRole.OWNER:
        raise AppError(
            ErrorCode.OWNER_LOCKED,
            "A workspace has exactly one owner. Ownership transfer is not supported.",
            422,
            field="role",
        )


def _build_workspace_dict(workspace: Workspace, role: WorkspaceRole | None = None) -> dict:
    payload = {
        "id": workspace.id,
        "name": workspace.name,
        "created_at": isoformat(workspace.created_at),
    }
    if role is not None:
        payload["role"] = role.value
    return payload


def _build_member_dict(member: WorkspaceMember, user: User) -> dict:
    return {
        "workspace_id": member.workspace_id,
        "user_id": user.id,
        "email": user.email,
        "role": member.role.value,
        "joined_at": isoformat(member.joined_at),
    }


# ── Public service functions ───────────────────────────────────────────────

def create_workspace(name: str, creator_id: int, session: Session, audit: AuditSink) -> dict:
    """
    Creates a workspace and the creator's OWNER row in one unit of work.
    """
    workspace = Workspace(name=name.strip())
    session.add(workspace)
    session.flush()  # populate workspace.id before creating the membership

    session.add(WorkspaceMember(
        workspace_id=workspace.id,
        user_id=creator_id,
        role=WorkspaceRole.OWNER,
    ))
    session.flush()

    audit.activity("WORKSPACE_CREATED", creator_id, {"workspace_id": workspace.id, "name": workspace.name})
    return _build_workspace_dict(workspace, WorkspaceRole.OWNER)


def list_workspaces(user_id: int, session: Session) -> list[dict]:
    """Workspaces the user holds any role in, with that role, oldest first."""
    rows = session.execute(
        select(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, Workspace.id == WorkspaceMember.workspace_id)
        .where(WorkspaceMember.user_id == user_id)
        .order_by(Workspace.created_at.asc(), Workspace.id.asc())
    ).all()
    return [_build_workspace_dict(workspace, role) for workspace, role in rows]


def list_all_workspaces(caller_id: int, session: Session) -> list[dict]:
    """
    Every workspace in the system. ADMIN only.

    The caller's status is read from the DB, not from the token snapshot.
    """
    caller = session.get(User, caller_id)
    if caller is None or not authz.is_admin(caller.global_status):
        raise forbidden("Forbidden: Only ADMIN users can view all workspaces.")

    workspaces = session.execute(
        select(Workspace).order_by(Workspace.created_at.asc(), Workspace.id.asc())
    ).scalars().all()
    return [_build_workspace_dict(w) for w in workspaces]


def get_workspace(workspace_id: int, caller_id: int, session: Session) -> dict:
    """Workspace details with the member list. Any workspace role may read."""
    workspace = get_workspace_or_404(workspace_id, session)
    role = authz.get_workspace_role(caller_id, workspace_id, session)
    if role is None:
        raise forbidden("Forbidden: You do not have permission to view this workspace.")

    payload = _build_workspace_dict(workspace, role)
    payload["members"] = list_members(workspace_id, caller_id, session)
    return payload


def list_members(workspace_id: int, caller_id: int, session: Session) -> list[dict]:
    get_workspace_or_404(workspace_id, session)
    if not authz.can_view_workspace(caller_id, workspace_id, session):
        raise forbidden("Forbidden: You do not have permission to view this workspace.")

    rows = session.execute(
        select(WorkspaceMember, User)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(WorkspaceMember.workspace_id == workspace_id)
        .order_by(WorkspaceMember.joined_at.asc(), WorkspaceMember.id.asc())
    ).all()
    return [_build_member_dict(member, user) for member, user in rows]


def list_member_ids(workspace_id: int, session: Session) -> set[int]:
    """Current member user ids; the audience for workspace events."""
    return set(session.execute(
        select(WorkspaceMember.user_id).where(WorkspaceMember.workspace_id == workspace_id)
    ).scalars().all())


def add_member(
        workspace_id: int,
        caller_id: int,
        email: str,
        session: Session,
        audit: AuditSink,
        role: WorkspaceRole = WorkspaceRole.MEMBER,
) -> dict:
    """
    Adds the user with `email` to the workspace. OWNER only.

    Raises:
      AppError(WORKSPACE_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)        — caller is not the OWNER
      AppError(OWNER_LOCKED, 422)     — role OWNER requested
      AppError(USER_NOT_FOUND, 404)   — no user with that email
      AppError(ALREADY_MEMBER, 409)
    """
    get_workspace_or_404(workspace_id, session)
    _require_owner(workspace_id, caller_id, session, "Forbidden: Only workspace owners can add members.")
    _reject_owner_grant(role)

    target = credential_service.find_user_by_email(email, session)
    if target is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            "User to add not found.",
            404,
            field="email",
        )

    if _get_membership(workspace_id, target.id, session) is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            "User is already a member of this workspace.",
            409,
        )

    member = WorkspaceMember(workspace_id=workspace_id, user_id=target.id, role=role)
    session.add(member)
    session.flush()

    audit.activity(
        "WORKSPACE_MEMBER_ADDED",
        caller_id,
        {"workspace_id": workspace_id, "target_user_id": target.id, "role": role.value},
    )
    return _build_member_dict(member, target)


def remove_member(
        workspace_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
        audit: AuditSink,
) -> None:
    """
    Removes a member. OWNER only; the OWNER themself can never be removed.

    Raises:
      AppError(WORKSPACE_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(OWNER_LOCKED, 422)
      AppError(USER_NOT_FOUND, 404) — target holds no role here
    """
    get_workspace_or_404(workspace_id, session)
    _require_owner(workspace_id, caller_id, session, "Forbidden: Only workspace owners can remove members.")

    member = _get_membership(workspace_id, target_user_id, session)
    if member is not None and member.role == WorkspaceRole.OWNER:
        raise AppError(
            ErrorCode.OWNER_LOCKED,
            "Cannot remove the workspace owner. Ownership transfer is not supported.",
            422,
        )
    if member is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of workspace {workspace_id}.",
            404,
        )

    # Project roles in this workspace go with the workspace role.
    project_ids = select(Project.id).where(Project.workspace_id == workspace_id)
    session.execute(
        delete(ProjectMember).where(
            ProjectMember.user_id == target_user_id,
            ProjectMember.project_id.in_(project_ids),
        )
    )
    session.delete(member)
    session.flush()

    audit.activity(
        "WORKSPACE_MEMBER_REMOVED",
        caller_id,
        {"workspace_id": workspace_id, "target_user_id": target_user_id},
    )


def update_member_role(
        workspace_id: int,
        caller_id: int,
        target_user_id: int,
        new_role: WorkspaceRole,
        session: Session,
        audit: AuditSink,
) -> dict:
    """
    Changes a member's role. OWNER only; the OWNER's own role is locked and
    OWNER cannot be granted.
    """
    get_workspace_or_404(workspace_id, session)
    _require_owner(workspace_id, caller_id, session, "Forbidden: Only workspace owners can update member roles.")

    member = _get_membership(workspace_id, target_user_id, session)
    if member is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of workspace {workspace_id}.",
            404,
        )
    if member.role == WorkspaceRole.OWNER:
        raise AppError(
            ErrorCode.OWNER_LOCKED,
            "Cannot change the role of the workspace owner. Ownership transfer is not supported.",
            422,
        )
    _reject_owner_grant(new_role)

    old_role = member.role
    member.role = new_role
    session.flush()

    audit.activity(
        "WORKSPACE_MEMBER_ROLE_UPDATED",
        caller_id,
        {
            "workspace_id": workspace_id,
            "target_user_id": target_user_id,
            "old_role": old_role.value,
            "new_role": new_role.value,
        },
    )
    return _build_member_dict(member, session.get(User, target_user_id))
