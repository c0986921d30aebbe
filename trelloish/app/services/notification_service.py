"""
services/notification_service.py — In-app notifications.

Notifications are created by other services inside their own unit of work
(task assignment) and read back by their recipient. Nobody else can see
or change them: a notification belonging to another user is reported as
not found.

Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from trelloish.app.clock import isoformat, utcnow
from trelloish.app.errors import AppError, ErrorCode
from trelloish.app.models.enums import NotificationStatus, RelatedEntityType
from trelloish.app.models.notification import Notification


def build_notification_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "title": notification.title,
        "body": notification.body,
        "status": notification.status.value,
        "related_entity_id": notification.related_entity_id,
        "related_entity_type": (
            notification.related_entity_type.value
            if notification.related_entity_type is not None else None
        ),
        "created_at": isoformat(notification.created_at),
        "updated_at": isoformat(notification.updated_at),
    }


def create_notification(
        recipient_id: int,
        title: str,
        body: str,
        session: Session,
        related_entity_id: int | None = None,
        related_entity_type: RelatedEntityType | None = None,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        title=title,
        body=body,
        status=NotificationStatus.DELIVERED,
        related_entity_id=related_entity_id,
        related_entity_type=related_entity_type,
    )
    session.add(notification)
    session.flush()
    return notification


def list_notifications(
        user_id: int,
        session: Session,
        status: NotificationStatus | None = None,
) -> list[dict]:
    """The caller's notifications, newest first, optionally filtered by status."""
    stmt = select(Notification).where(Notification.recipient_id == user_id)
    if status is not None:
        stmt = stmt.where(Notification.status == status)
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())

    return [build_notification_dict(n) for n in session.execute(stmt).scalars().all()]


def mark_seen(notification_id: int, caller_id: int, session: Session) -> dict:
    """
    Raises:
      AppError(NOTIFICATION_NOT_FOUND, 404) — missing, or not the caller's
    """
    notification = session.get(Notification, notification_id)
    if notification is None or notification.recipient_id != caller_id:
        raise AppError(
            ErrorCode.NOTIFICATION_NOT_FOUND,
            f"Notification {notification_id} does not exist.",
            404,
        )

    if notification.status != NotificationStatus.SEEN:
        notification.status = NotificationStatus.SEEN
        notification.updated_at = utcnow()
        session.flush()

    return build_notification_dict(notification)
