"""
tests/integration/helpers.py — Request helpers shared by the integration tests.

Each helper asserts the expected status where the test is not about that
call, and returns either the response data dict or the raw response.
"""

from __future__ import annotations

from trelloish.app.extensions import db
from trelloish.app.models.enums import UserStatus
from trelloish.app.models.user import User

PASSWORD = "Password1"
REFRESH_COOKIE = "refreshToken"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email: str = "alice@test.com", password: str = PASSWORD) -> dict:
    """Returns {"access_token", "user"}; the refresh cookie lands on `client`."""
    resp = client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def refresh_cookie(client) -> str | None:
    cookie = client.get_cookie(REFRESH_COOKIE)
    return cookie.value if cookie is not None else None


def set_status(app, user_id: int, status: UserStatus) -> None:
    """Direct DB write; the only way to bootstrap the first ADMIN."""
    with app.app_context():
        user = db.session.get(User, user_id)
        user.global_status = status
        db.session.commit()


def make_workspace(client, token: str, name: str = "Acme") -> dict:
    resp = client.post("/api/v1/workspaces/", json={"name": name}, headers=auth_headers(token))
    assert resp.status_code == 201, f"make_workspace failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_workspace_member(client, token: str, workspace_id: int, email: str, role: str | None = None):
    payload = {"email": email}
    if role is not None:
        payload["role"] = role
    return client.post(
        f"/api/v1/workspaces/{workspace_id}/members",
        json=payload,
        headers=auth_headers(token),
    )


def make_project(client, token: str, workspace_id: int, name: str = "Launch") -> dict:
    resp = client.post(
        f"/api/v1/workspaces/{workspace_id}/projects",
        json={"name": name},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_project failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_project_member(client, token: str, project_id: int, user_id: int, role: str | None = None):
    payload: dict = {"user_id": user_id}
    if role is not None:
        payload["role"] = role
    return client.post(
        f"/api/v1/projects/{project_id}/members",
        json=payload,
        headers=auth_headers(token),
    )


def make_task(client, token: str, project_id: int, title: str = "Write docs", assignee_ids=None):
    payload: dict = {"title": title}
    if assignee_ids is not None:
        payload["assignee_ids"] = assignee_ids
    return client.post(
        f"/api/v1/projects/{project_id}/tasks",
        json=payload,
        headers=auth_headers(token),
    )


def audit_actions(audit_events) -> list[str]:
    return [event.action for event in audit_events]
