"""
models/notification.py — Notification table definition.

Notifications are written inside the same transaction as the change that
caused them (task assignment), so they never exist for a rolled-back task.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from trelloish.app.extensions import db
from trelloish.app.models.enums import NotificationStatus, RelatedEntityType, enum_values


class Notification(db.Model):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)

    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    body: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[NotificationStatus] = mapped_column(
        Enum(
            NotificationStatus,
            name="notification_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=NotificationStatus.DELIVERED,
        server_default=NotificationStatus.DELIVERED.value,
    )

    # Loose reference; the related row may be deleted later.
    related_entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    related_entity_type: Mapped[RelatedEntityType | None] = mapped_column(
        Enum(
            RelatedEntityType,
            name="related_entity_type_enum",
            values_callable=enum_values,
        ),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Notification id={self.id} "
            f"recipient_id={self.recipient_id} "
            f"status={self.status.value}>"
        )
