"""
routes/workspaces.py — Workspace, membership and event-stream route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

Endpoints (base url_prefix=/api/v1/workspaces):
  POST   /workspaces                      → 201  create (caller becomes OWNER)
  GET    /workspaces                      → 200  list caller's workspaces
  GET    /workspaces/all                  → 200  list every workspace (ADMIN)
  GET    /workspaces/:id                  → 200  details + members
  GET    /workspaces/:id/members          → 200  list members
  POST   /workspaces/:id/members          → 201  add member by email (OWNER)
  PATCH  /workspaces/:id/members/:uid     → 200  change role (OWNER)
  DELETE /workspaces/:id/members/:uid     → 200  remove member (OWNER)
  GET    /workspaces/:id/events           → 200  text/event-stream of task status changes
"""

from __future__ import annotations

from flask import Blueprint, Response, current_app, g, jsonify, request

from trelloish.app.errors import forbidden
from trelloish.app.extensions import db, get_audit_sink, get_task_events
from trelloish.app.middleware.auth_middleware import (
    authenticate_token,
    parse_bearer_token,
    require_auth,
)
from trelloish.app.schemas.workspace_schema import (
    AddWorkspaceMemberSchema,
    CreateWorkspaceSchema,
    UpdateWorkspaceMemberRoleSchema,
)
from trelloish.app.services import authorization_service, workspace_service

workspaces_bp = Blueprint("workspaces", __name__)


@workspaces_bp.route("/", methods=["POST"])
@require_auth
def create_workspace():
    data = CreateWorkspaceSchema().load(request.get_json(force=True, silent=True) or {})
    result = workspace_service.create_workspace(
        name=data["name"],
        creator_id=g.user_id,
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@workspaces_bp.route("/", methods=["GET"])
@require_auth
def list_workspaces():
    result = workspace_service.list_workspaces(user_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@workspaces_bp.route("/all", methods=["GET"])
@require_auth
def list_all_workspaces():
    result = workspace_service.list_all_workspaces(caller_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@workspaces_bp.route("/<int:workspace_id>", methods=["GET"])
@require_auth
def get_workspace(workspace_id: int):
    result = workspace_service.get_workspace(
        workspace_id=workspace_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@workspaces_bp.route("/<int:workspace_id>/members", methods=["GET"])
@require_auth
def list_members(workspace_id: int):
    result = workspace_service.list_members(
        workspace_id=workspace_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@workspaces_bp.route("/<int:workspace_id>/members", methods=["POST"])
@require_auth
def add_member(workspace_id: int):
    data = AddWorkspaceMemberSchema().load(request.get_json(force=True, silent=True) or {})
    result = workspace_service.add_member(
        workspace_id=workspace_id,
        caller_id=g.user_id,
        email=data["email"],
        role=data["role"],
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@workspaces_bp.route("/<int:workspace_id>/members/<int:target_uid>", methods=["PATCH"])
@require_auth
def update_member_role(workspace_id: int, target_uid: int):
    data = UpdateWorkspaceMemberRoleSchema().load(request.get_json(force=True, silent=True) or {})
    result = workspace_service.update_member_role(
        workspace_id=workspace_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        new_role=data["role"],
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@workspaces_bp.route("/<int:workspace_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(workspace_id: int, target_uid: int):
    workspace_service.remove_member(
        workspace_id=workspace_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "workspace_id": workspace_id,
            "user_id": target_uid,
        },
        "warnings": [],
    }), 200


@workspaces_bp.route("/<int:workspace_id>/events", methods=["GET"])
def stream_events(workspace_id: int):
    """
    GET /workspaces/:id/events — Server-Sent Events for task status changes.

    The token is checked once, here. Browsers' EventSource cannot set
    headers, so ?access_token= is accepted as well as the Authorization
    header. The identity is frozen for the life of the stream.
    """
    raw_token = request.args.get("access_token")
    if not raw_token:
        raw_token = parse_bearer_token(request.headers.get("Authorization", ""))
    payload = authenticate_token(raw_token)

    workspace_service.get_workspace_or_404(workspace_id, db.session)
    if not authorization_service.can_view_workspace(payload.user_id, workspace_id, db.session):
        raise forbidden("Forbidden: You do not have permission to view this workspace.")

    ping_interval = current_app.config.get("EVENT_STREAM_PING_SECONDS", 30)

    return Response(
        get_task_events().listen(workspace_id, payload.user_id, ping_interval=ping_interval),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
