"""
tests/integration/test_workspaces.py — Workspace membership and owner lock-in.

401 vs 403: every endpoint here needs a bearer token (401 without one);
a caller without the right workspace role gets 403 FORBIDDEN.
"""

from __future__ import annotations

import pytest

from trelloish.app.models.enums import UserStatus
from trelloish.tests.integration.helpers import (
    add_project_member,
    add_workspace_member,
    auth_headers,
    make_project,
    make_workspace,
    register,
    set_status,
)


@pytest.fixture
def users(make_client):
    """alice, bob and carol, each registered on their own client."""
    result = {}
    for name in ("alice", "bob", "carol"):
        data = register(make_client(), f"{name}@test.com")
        result[name] = {"id": data["user"]["id"], "token": data["access_token"], "email": data["user"]["email"]}
    return result


class TestCreateAndRead:

    def test_creator_becomes_owner(self, client, users):
        ws = make_workspace(client, users["alice"]["token"], "Acme")

        assert ws["role"] == "OWNER"
        resp = client.get(f"/api/v1/workspaces/{ws['id']}", headers=auth_headers(users["alice"]["token"]))
        assert resp.status_code == 200
        members = resp.get_json()["data"]["members"]
        assert [(m["user_id"], m["role"]) for m in members] == [(users["alice"]["id"], "OWNER")]

    def test_list_shows_only_my_workspaces(self, client, users):
        make_workspace(client, users["alice"]["token"], "Alice WS")
        make_workspace(client, users["bob"]["token"], "Bob WS")

        resp = client.get("/api/v1/workspaces/", headers=auth_headers(users["alice"]["token"]))

        assert [w["name"] for w in resp.get_json()["data"]] == ["Alice WS"]

    def test_non_member_cannot_read(self, client, users):
        ws = make_workspace(client, users["alice"]["token"])
        resp = client.get(f"/api/v1/workspaces/{ws['id']}", headers=auth_headers(users["bob"]["token"]))
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_unknown_workspace_returns_404(self, client, users):
        resp = client.get("/api/v1/workspaces/999", headers=auth_headers(users["alice"]["token"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "WORKSPACE_NOT_FOUND"

    def test_blank_name_returns_400(self, client, users):
        resp = client.post("/api/v1/workspaces/", json={"name": "   "}, headers=auth_headers(users["alice"]["token"]))
        assert resp.status_code == 400

    def test_requires_bearer(self, client):
        assert client.get("/api/v1/workspaces/").status_code == 401

    def test_list_all_is_admin_only(self, app, client, users):
        make_workspace(client, users["alice"]["token"], "One")
        make_workspace(client, users["bob"]["token"], "Two")

        denied = client.get("/api/v1/workspaces/all", headers=auth_headers(users["carol"]["token"]))
        assert denied.status_code == 403

        # Status is read from the DB, so carol's existing token works after promotion.
        set_status(app, users["carol"]["id"], UserStatus.ADMIN)
        allowed = client.get("/api/v1/workspaces/all", headers=auth_headers(users["carol"]["token"]))
        assert allowed.status_code == 200
        assert {w["name"] for w in allowed.get_json()["data"]} == {"One", "Two"}


class TestMembership:

    def test_owner_adds_member_with_default_role(self, client, users):
        ws = make_workspace(client, users["alice"]["token"])

        resp = add_workspace_member(client, users["alice"]["token"], ws["id"], "bob@test.com")

        assert resp.status_code == 201
        assert resp.get_json()["data"]["role"] == "MEMBER"

    def test_add_unknown_email_returns_404(self, client, users):
        ws = make_workspace(client, users["alice"]["token"])
        resp = add_workspace_member(client, users["alice"]["token"], ws["id"], "ghost@test.com")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"

    def test_add_twice_returns_409(self, client, users):
        ws = make_workspace(client, users["alice"]["token"])
        add_workspace_member(client, users["alice"]["token"], ws["id"], "bob@test.com")
        resp = add_workspace_member(client, users["alice"]["token"], ws["id"], "bob@test.com")
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "ALREADY_MEMBER"

    def test_member_cannot_add_members(self, client, users):
        ws = make_workspace(client, users["alice"]["token"])
        add_workspace_member(client, users["alice"]["token"], ws["id"], "bob@test.com")

        resp = add_workspace_member(client, users["bob"]["token"], ws["id"], "carol@test.com")

        assert resp.status_code == 403
        assert "owners" in resp.get_json()["error"]["message"]

    def test_owner_changes_member_role(self, client, users):
        ws = make_workspace(client, users["alice"]["token"])
        add_workspace_member(client, users["alice"]["token"], ws["id"], "bob@test.com")

        resp = client.patch(
            f"/api/v1/workspaces/{ws['id']}/members/{users['bob']['id']}",
            json={"role": "VIEWER"},
            headers=auth_headers(users["alice"]["token"]),
        )

        assert resp.status_code == 200
        assert resp.get_json()["data"]["role"] == "VIEWER"

    def test_removing_a_member_drops_their_project_roles(self, client, users):
        alice = users["alice"]["token"]
        ws = make_workspace(client, alice)
        add_workspace_member(client, alice, ws["id"], "bob@test.com")
        project = make_project(client, alice, ws["id"])
        assert add_project_member(client, alice, project["id"], users["bob"]["id"]).status_code == 201

        resp = client.delete(
            f"/api/v1/workspaces/{ws['id']}/members/{users['bob']['id']}",
            headers=auth_headers(alice),
        )

        assert resp.status_code == 200
        members = client.get(f"/api/v1/projects/{project['id']}/members", headers=auth_headers(alice))
        assert [m["user_id"] for m in members.get_json()["data"]] == [users["alice"]["id"]]


class TestOwnerLockIn:

    @pytest.fixture
    def workspace(self, client, users):
        ws = make_workspace(client, users["alice"]["token"])
        add_workspace_member(client, users["alice"]["token"], ws["id"], "bob@test.com")
        return ws

    def _owner_role(self, client, users, ws) -> str:
        resp = client.get(f"/api/v1/workspaces/{ws['id']}/members", headers=auth_headers(users["alice"]["token"]))
        return {m["user_id"]: m["role"] for m in resp.get_json()["data"]}[users["alice"]["id"]]

    def test_owner_cannot_remove_themself(self, client, users, workspace):
        resp = client.delete(
            f"/api/v1/workspaces/{workspace['id']}/members/{users['alice']['id']}",
            headers=auth_headers(users["alice"]["token"]),
        )
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "OWNER_LOCKED"
        assert self._owner_role(client, users, workspace) == "OWNER"

    def test_owner_role_cannot_be_changed(self, client, users, workspace):
        resp = client.patch(
            f"/api/v1/workspaces/{workspace['id']}/members/{users['alice']['id']}",
            json={"role": "MEMBER"},
            headers=auth_headers(users["alice"]["token"]),
        )
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "OWNER_LOCKED"
        assert self._owner_role(client, users, workspace) == "OWNER"

    def test_member_cannot_remove_owner(self, client, users, workspace):
        resp = client.delete(
            f"/api/v1/workspaces/{workspace['id']}/members/{users['alice']['id']}",
            headers=auth_headers(users["bob"]["token"]),
        )
        assert resp.status_code == 403
        assert self._owner_role(client, users, workspace) == "OWNER"

    def test_ownership_cannot_be_granted(self, client, users, workspace):
        resp = client.patch(
            f"/api/v1/workspaces/{workspace['id']}/members/{users['bob']['id']}",
            json={"role": "OWNER"},
            headers=auth_headers(users["alice"]["token"]),
        )
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "OWNER_LOCKED"
