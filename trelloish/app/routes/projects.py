"""
routes/projects.py — Project and project-membership route handlers.

Registered at /api/v1 (not /api/v1/projects) because it owns BOTH
/workspaces/<id>/projects (create/list) AND /projects/<id>/... paths.

Endpoints:
  POST   /workspaces/:id/projects         → 201  create (OWNER / MEMBER)
  GET    /workspaces/:id/projects         → 200  list (workspace roles)
  GET    /projects/:id                    → 200  details + members
  PATCH  /projects/:id                    → 200  rename (LEAD / workspace OWNER)
  DELETE /projects/:id                    → 200  delete (LEAD / workspace OWNER)
  GET    /projects/:id/members            → 200
  POST   /projects/:id/members            → 201  add workspace member
  PATCH  /projects/:id/members/:uid       → 200  change role
  DELETE /projects/:id/members/:uid       → 200  remove
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from trelloish.app.extensions import db, get_audit_sink
from trelloish.app.middleware.auth_middleware import require_auth
from trelloish.app.schemas.workspace_schema import (
    AddProjectMemberSchema,
    CreateProjectSchema,
    UpdateProjectMemberRoleSchema,
    UpdateProjectSchema,
)
from trelloish.app.services import project_service

projects_bp = Blueprint("projects", __name__)


@projects_bp.route("/workspaces/<int:workspace_id>/projects", methods=["POST"])
@require_auth
def create_project(workspace_id: int):
    data = CreateProjectSchema().load(request.get_json(force=True, silent=True) or {})
    result = project_service.create_project(
        workspace_id=workspace_id,
        name=data["name"],
        creator_id=g.user_id,
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@projects_bp.route("/workspaces/<int:workspace_id>/projects", methods=["GET"])
@require_auth
def list_projects(workspace_id: int):
    result = project_service.list_projects(
        workspace_id=workspace_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@projects_bp.route("/projects/<int:project_id>", methods=["GET"])
@require_auth
def get_project(project_id: int):
    result = project_service.get_project(
        project_id=project_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@projects_bp.route("/projects/<int:project_id>", methods=["PATCH"])
@require_auth
def update_project(project_id: int):
    data = UpdateProjectSchema().load(request.get_json(force=True, silent=True) or {})
    result = project_service.update_project(
        project_id=project_id,
        caller_id=g.user_id,
        name=data["name"],
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@projects_bp.route("/projects/<int:project_id>", methods=["DELETE"])
@require_auth
def delete_project(project_id: int):
    project_service.delete_project(
        project_id=project_id,
        caller_id=g.user_id,
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "project_id": project_id}, "warnings": []}), 200


@projects_bp.route("/projects/<int:project_id>/members", methods=["GET"])
@require_auth
def list_members(project_id: int):
    result = project_service.list_members(
        project_id=project_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@projects_bp.route("/projects/<int:project_id>/members", methods=["POST"])
@require_auth
def add_member(project_id: int):
    data = AddProjectMemberSchema().load(request.get_json(force=True, silent=True) or {})
    result = project_service.add_member(
        project_id=project_id,
        caller_id=g.user_id,
        target_user_id=data["user_id"],
        role=data["role"],
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@projects_bp.route("/projects/<int:project_id>/members/<int:target_uid>", methods=["PATCH"])
@require_auth
def update_member_role(project_id: int, target_uid: int):
    data = UpdateProjectMemberRoleSchema().load(request.get_json(force=True, silent=True) or {})
    result = project_service.update_member_role(
        project_id=project_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        new_role=data["role"],
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@projects_bp.route("/projects/<int:project_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(project_id: int, target_uid: int):
    project_service.remove_member(
        project_id=project_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "project_id": project_id,
            "user_id": target_uid,
        },
        "warnings": [],
    }), 200
