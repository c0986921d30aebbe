"""
routes/tasks.py — Task route handlers.

Endpoints (base url_prefix=/api/v1):
  POST   /projects/:id/tasks  → 201  create (LEAD / CONTRIBUTOR)
  GET    /projects/:id/tasks  → 200  list (project roles)
  GET    /tasks/:id           → 200
  PATCH  /tasks/:id           → 200  partial update
  DELETE /tasks/:id           → 200  delete (LEAD / workspace OWNER)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from trelloish.app.extensions import db, get_audit_sink, get_task_events
from trelloish.app.middleware.auth_middleware import require_auth
from trelloish.app.schemas.task_schema import CreateTaskSchema, UpdateTaskSchema
from trelloish.app.services import task_service

tasks_bp = Blueprint("tasks", __name__)


@tasks_bp.route("/projects/<int:project_id>/tasks", methods=["POST"])
@require_auth
def create_task(project_id: int):
    data = CreateTaskSchema().load(request.get_json(force=True, silent=True) or {})
    result = task_service.create_task(
        project_id=project_id,
        caller_id=g.user_id,
        title=data["title"],
        description=data["description"],
        status=data["status"],
        assignee_ids=data.get("assignee_ids", []),
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@tasks_bp.route("/projects/<int:project_id>/tasks", methods=["GET"])
@require_auth
def list_tasks(project_id: int):
    result = task_service.list_tasks(
        project_id=project_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@tasks_bp.route("/tasks/<int:task_id>", methods=["GET"])
@require_auth
def get_task(task_id: int):
    result = task_service.get_task(task_id=task_id, caller_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@tasks_bp.route("/tasks/<int:task_id>", methods=["PATCH"])
@require_auth
def update_task(task_id: int):
    changes = UpdateTaskSchema().load(request.get_json(force=True, silent=True) or {})
    result = task_service.update_task(
        task_id=task_id,
        caller_id=g.user_id,
        changes=changes,
        session=db.session,
        audit=get_audit_sink(),
        events=get_task_events(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@tasks_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id: int):
    task_service.delete_task(
        task_id=task_id,
        caller_id=g.user_id,
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "task_id": task_id}, "warnings": []}), 200
