"""
models/enums.py — Enum types shared by models, schemas and services.

Defined apart from the models so schemas and the authorization resolver can
import them without pulling in the ORM classes. Do not duplicate these as
plain string constants anywhere else in the codebase.
"""

from __future__ import annotations

import enum


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    BANNED = "BANNED"
    ADMIN  = "ADMIN"


class WorkspaceRole(str, enum.Enum):
    """Hierarchy: OWNER > MEMBER > VIEWER."""
    OWNER  = "OWNER"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class ProjectRole(str, enum.Enum):
    """Hierarchy: PROJECT_LEAD > CONTRIBUTOR > PROJECT_VIEWER."""
    PROJECT_LEAD   = "PROJECT_LEAD"
    CONTRIBUTOR    = "CONTRIBUTOR"
    PROJECT_VIEWER = "PROJECT_VIEWER"


class TaskStatus(str, enum.Enum):
    TODO        = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE        = "DONE"


class NotificationStatus(str, enum.Enum):
    DELIVERED = "DELIVERED"
    SEEN      = "SEEN"


class RelatedEntityType(str, enum.Enum):
    TASK      = "TASK"
    PROJECT   = "PROJECT"
    WORKSPACE = "WORKSPACE"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values, not member names."""
    return [member.value for member in enum_cls]
