"""
schemas/workspace_schema.py — Schemas for workspace and project endpoints.

Role existence, ownership and the workspace-membership precondition for
projects are service concerns; only shapes are checked here.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate

from trelloish.app.models.enums import ProjectRole, WorkspaceRole


def validate_non_empty_after_trim(value: str) -> None:
    """
    validate.Length(min=1) alone allows whitespace-only strings like "   ".
    Mirrors the DB CHECK(LENGTH(TRIM(name)) > 0) at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _name_field() -> fields.Str:
    return fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=100, error="Name must be between 1 and 100 characters."),
            validate_non_empty_after_trim,
        ],
    )


class CreateWorkspaceSchema(Schema):
    name = _name_field()


class AddWorkspaceMemberSchema(Schema):
    """POST /workspaces/:id/members — role defaults to MEMBER."""

    email = fields.Email(required=True)
    role = fields.Enum(WorkspaceRole, by_value=True, load_default=WorkspaceRole.MEMBER)


class UpdateWorkspaceMemberRoleSchema(Schema):
    role = fields.Enum(WorkspaceRole, by_value=True, required=True)


class CreateProjectSchema(Schema):
    name = _name_field()


class UpdateProjectSchema(Schema):
    name = _name_field()


class AddProjectMemberSchema(Schema):
    """POST /projects/:id/members — role defaults to CONTRIBUTOR."""

    user_id = fields.Int(
        required=True,
        strict=True,  # reject floats like 1.0
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )
    role = fields.Enum(ProjectRole, by_value=True, load_default=ProjectRole.CONTRIBUTOR)


class UpdateProjectMemberRoleSchema(Schema):
    role = fields.Enum(ProjectRole, by_value=True, required=True)
