"""
schemas/task_schema.py — Schemas for tasks, notifications and admin user endpoints.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from trelloish.app.models.enums import NotificationStatus, TaskStatus, UserStatus
from trelloish.app.schemas.auth_schema import validate_password_strength
from trelloish.app.schemas.workspace_schema import validate_non_empty_after_trim


def _title_field(required: bool) -> fields.Str:
    return fields.Str(
        required=required,
        validate=[
            validate.Length(min=1, max=200, error="Title must be between 1 and 200 characters."),
            validate_non_empty_after_trim,
        ],
    )


def _assignee_ids_field() -> fields.List:
    return fields.List(
        fields.Int(strict=True, validate=validate.Range(min=1)),
    )


class _TaskSchemaBase(Schema):

    assignee_ids = _assignee_ids_field()

    @validates("assignee_ids")
    def validate_unique_assignees(self, value: list[int], **kwargs) -> None:
        if len(set(value)) != len(value):
            raise ValidationError("The same user_id appears more than once in assignee_ids.")


class CreateTaskSchema(_TaskSchemaBase):
    title = _title_field(required=True)
    description = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=5000))
    status = fields.Enum(TaskStatus, by_value=True, load_default=TaskStatus.TODO)


class UpdateTaskSchema(_TaskSchemaBase):
    """
    PATCH /tasks/:id — every field optional; absent fields are left alone.
    assignee_ids replaces the whole set (send [] to unassign everyone).
    """

    title = _title_field(required=False)
    description = fields.Str(allow_none=True, validate=validate.Length(max=5000))
    status = fields.Enum(TaskStatus, by_value=True)


class NotificationFilterSchema(Schema):
    """Query string of GET /notifications."""

    status = fields.Enum(NotificationStatus, by_value=True, load_default=None)


class UpdateUserStatusSchema(Schema):
    status = fields.Enum(UserStatus, by_value=True, required=True)


class AdminResetPasswordSchema(Schema):
    new_password = fields.Str(required=True, load_only=True, validate=validate_password_strength)
