"""
routes/notifications.py — The caller's own notifications.

Endpoints (base url_prefix=/api/v1/notifications):
  GET    /notifications?status=DELIVERED|SEEN  → 200
  POST   /notifications/:id/seen               → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from trelloish.app.extensions import db
from trelloish.app.middleware.auth_middleware import require_auth
from trelloish.app.schemas.task_schema import NotificationFilterSchema
from trelloish.app.services import notification_service

notifications_bp = Blueprint("notifications", __name__)


@notifications_bp.route("/", methods=["GET"])
@require_auth
def list_notifications():
    query = NotificationFilterSchema().load(request.args.to_dict())
    result = notification_service.list_notifications(
        user_id=g.user_id,
        session=db.session,
        status=query["status"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@notifications_bp.route("/<int:notification_id>/seen", methods=["POST"])
@require_auth
def mark_seen(notification_id: int):
    result = notification_service.mark_seen(
        notification_id=notification_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
