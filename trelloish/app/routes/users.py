"""
routes/users.py — Admin user-management route handlers.

Endpoints (base url_prefix=/api/v1/users):
  PATCH  /users/:id/status          → 200  ban / unban / promote (ADMIN only)
  POST   /users/:id/reset_password  → 200  set a user's password (ADMIN only, not self)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from trelloish.app.extensions import db, get_audit_sink
from trelloish.app.middleware.auth_middleware import require_auth
from trelloish.app.schemas.task_schema import AdminResetPasswordSchema, UpdateUserStatusSchema
from trelloish.app.services import user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/<int:user_id>/status", methods=["PATCH"])
@require_auth
def update_user_status(user_id: int):
    data = UpdateUserStatusSchema().load(request.get_json(force=True, silent=True) or {})
    result = user_service.admin_update_user_status(
        caller_id=g.user_id,
        target_user_id=user_id,
        new_status=data["status"],
        session=db.session,
        audit=get_audit_sink(),
        ip_address=request.remote_addr,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/<int:user_id>/reset_password", methods=["POST"])
@require_auth
def reset_user_password(user_id: int):
    data = AdminResetPasswordSchema().load(request.get_json(force=True, silent=True) or {})
    result = user_service.admin_reset_user_password(
        caller_id=g.user_id,
        target_user_id=user_id,
        new_password=data["new_password"],
        session=db.session,
        audit=get_audit_sink(),
        ip_address=request.remote_addr,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
