"""
tests/integration/test_admin_users.py — Admin status changes and password resets.
"""

from __future__ import annotations

import pytest

from trelloish.app.models.enums import UserStatus
from trelloish.tests.integration.helpers import (
    audit_actions,
    auth_headers,
    login,
    refresh_cookie,
    register,
    set_status,
)


@pytest.fixture
def admin(app, make_client):
    data = register(make_client(), "root@test.com")
    set_status(app, data["user"]["id"], UserStatus.ADMIN)
    return {"id": data["user"]["id"], "token": data["access_token"]}


@pytest.fixture
def bob(make_client):
    c = make_client()
    data = register(c, "bob@test.com")
    return {"id": data["user"]["id"], "token": data["access_token"], "client": c}


def _set_status(client, token: str, user_id: int, status: str):
    return client.patch(
        f"/api/v1/users/{user_id}/status",
        json={"status": status},
        headers=auth_headers(token),
    )


class TestUpdateStatus:

    def test_non_admin_is_forbidden(self, client, bob, admin):
        resp = _set_status(client, bob["token"], admin["id"], "BANNED")
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_admin_cannot_ban_themself(self, client, admin, audit_events):
        resp = _set_status(client, admin["token"], admin["id"], "BANNED")

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "SELF_ADMIN_ACTION"
        assert "ADMIN_SELF_BAN_REJECTED" in audit_actions(audit_events)

    def test_unknown_user_returns_404(self, client, admin):
        resp = _set_status(client, admin["token"], 999, "BANNED")
        assert resp.status_code == 404

    def test_invalid_status_returns_400(self, client, admin, bob):
        resp = _set_status(client, admin["token"], bob["id"], "SUPERUSER")
        assert resp.status_code == 400

    def test_banned_user_cannot_login_or_refresh(self, client, admin, bob, audit_events):
        resp = _set_status(client, admin["token"], bob["id"], "BANNED")

        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "BANNED"
        assert "ADMIN_USER_BANNED" in audit_actions(audit_events)

        denied = client.post("/api/v1/auth/login", json={"email": "bob@test.com", "password": "Password1"})
        assert denied.status_code == 401
        assert denied.get_json()["error"]["code"] == "ACCOUNT_BANNED"

        assert refresh_cookie(bob["client"]) is not None
        refreshed = bob["client"].post("/api/v1/auth/refresh_token")
        assert refreshed.status_code == 403

    def test_unban_restores_login(self, client, admin, bob, audit_events):
        _set_status(client, admin["token"], bob["id"], "BANNED")
        resp = _set_status(client, admin["token"], bob["id"], "ACTIVE")

        assert resp.get_json()["data"]["status"] == "ACTIVE"
        assert "ADMIN_USER_UNBANNED" in audit_actions(audit_events)
        login(client, "bob@test.com")

    def test_promoted_user_gains_admin_rights(self, client, admin, bob):
        _set_status(client, admin["token"], bob["id"], "ADMIN")

        resp = client.get("/api/v1/workspaces/all", headers=auth_headers(bob["token"]))
        assert resp.status_code == 200


class TestAdminResetPassword:

    def _reset(self, client, token: str, user_id: int, new_password: str = "Changed99"):
        return client.post(
            f"/api/v1/users/{user_id}/reset_password",
            json={"new_password": new_password},
            headers=auth_headers(token),
        )

    def test_admin_resets_another_users_password(self, client, admin, bob, audit_events):
        resp = self._reset(client, admin["token"], bob["id"])

        assert resp.status_code == 200
        assert "ADMIN_PASSWORD_RESET" in audit_actions(audit_events)
        login(client, "bob@test.com", "Changed99")
        old = client.post("/api/v1/auth/login", json={"email": "bob@test.com", "password": "Password1"})
        assert old.status_code == 401

    def test_admin_cannot_reset_own_password(self, client, admin):
        resp = self._reset(client, admin["token"], admin["id"])
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "SELF_ADMIN_ACTION"

    def test_non_admin_is_forbidden(self, client, bob, admin):
        resp = self._reset(client, bob["token"], admin["id"])
        assert resp.status_code == 403

    def test_weak_password_rejected(self, client, admin, bob):
        resp = self._reset(client, admin["token"], bob["id"], "short")
        assert resp.status_code == 400
