"""
tests/unit/test_schemas.py — marshmallow schemas, no app context and no DB.

Membership and ownership rules are service concerns and are not tested here.
"""

from __future__ import annotations

import pytest
from marshmallow import ValidationError

from trelloish.app.models.enums import (
    NotificationStatus,
    ProjectRole,
    TaskStatus,
    UserStatus,
    WorkspaceRole,
)
from trelloish.app.schemas.auth_schema import (
    ForgotPasswordSchema,
    LoginSchema,
    RegisterSchema,
    ResetPasswordSchema,
    validate_password_strength,
)
from trelloish.app.schemas.task_schema import (
    CreateTaskSchema,
    NotificationFilterSchema,
    UpdateTaskSchema,
    UpdateUserStatusSchema,
)
from trelloish.app.schemas.workspace_schema import (
    AddProjectMemberSchema,
    AddWorkspaceMemberSchema,
    CreateWorkspaceSchema,
)


# ── Passwords ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize("password", ["short1", "lettersonly", "12345678", "a1" + "x" * 71])
def test_weak_passwords_rejected(password):
    with pytest.raises(ValidationError):
        validate_password_strength(password)


def test_strong_password_accepted():
    validate_password_strength("Password1")


def test_register_requires_email_and_password():
    with pytest.raises(ValidationError) as exc_info:
        RegisterSchema().load({})
    assert set(exc_info.value.messages) == {"email", "password"}


def test_register_rejects_bad_email():
    with pytest.raises(ValidationError) as exc_info:
        RegisterSchema().load({"email": "not-an-email", "password": "Password1"})
    assert "email" in exc_info.value.messages


def test_email_is_stripped_before_validation():
    assert RegisterSchema().load({"email": "  a@test.com ", "password": "Password1"})["email"] == "a@test.com"
    assert LoginSchema().load({"email": " a@test.com", "password": "x"})["email"] == "a@test.com"
    assert ForgotPasswordSchema().load({"email": "a@test.com\n"})["email"] == "a@test.com"


def test_login_does_not_check_strength():
    assert LoginSchema().load({"email": "a@test.com", "password": "x"})["password"] == "x"


def test_reset_password_validates_new_password():
    with pytest.raises(ValidationError) as exc_info:
        ResetPasswordSchema().load({"token": "t", "new_password": "weak"})
    assert "new_password" in exc_info.value.messages


# ── Workspaces and projects ────────────────────────────────────────────────

def test_whitespace_name_rejected():
    with pytest.raises(ValidationError):
        CreateWorkspaceSchema().load({"name": "   "})


def test_workspace_member_role_defaults_to_member():
    data = AddWorkspaceMemberSchema().load({"email": "b@test.com"})
    assert data["role"] == WorkspaceRole.MEMBER


def test_workspace_member_role_must_be_known():
    with pytest.raises(ValidationError):
        AddWorkspaceMemberSchema().load({"email": "b@test.com", "role": "ADMIN"})


def test_project_member_defaults_and_strict_id():
    assert AddProjectMemberSchema().load({"user_id": 3})["role"] == ProjectRole.CONTRIBUTOR
    with pytest.raises(ValidationError):
        AddProjectMemberSchema().load({"user_id": "3"})


# ── Tasks, notifications, users ────────────────────────────────────────────

def test_create_task_defaults():
    data = CreateTaskSchema().load({"title": "Write docs"})
    assert data["status"] == TaskStatus.TODO
    assert data["description"] is None
    assert "assignee_ids" not in data


def test_duplicate_assignees_rejected():
    with pytest.raises(ValidationError) as exc_info:
        CreateTaskSchema().load({"title": "x", "assignee_ids": [1, 1]})
    assert "assignee_ids" in exc_info.value.messages


def test_update_task_keeps_only_given_fields():
    assert UpdateTaskSchema().load({"status": "DONE"}) == {"status": TaskStatus.DONE}


def test_update_task_allows_clearing_assignees():
    assert UpdateTaskSchema().load({"assignee_ids": []}) == {"assignee_ids": []}


def test_unknown_task_status_rejected():
    with pytest.raises(ValidationError):
        UpdateTaskSchema().load({"status": "BLOCKED"})


def test_notification_filter_is_optional():
    assert NotificationFilterSchema().load({}) == {"status": None}
    assert NotificationFilterSchema().load({"status": "SEEN"}) == {"status": NotificationStatus.SEEN}


def test_user_status_required():
    assert UpdateUserStatusSchema().load({"status": "BANNED"})["status"] == UserStatus.BANNED
    with pytest.raises(ValidationError):
        UpdateUserStatusSchema().load({})
