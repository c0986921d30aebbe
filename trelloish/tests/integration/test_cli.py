"""
tests/integration/test_cli.py — `flask create-admin` and `flask init-db`.
"""

from __future__ import annotations

from trelloish.tests.integration.helpers import audit_actions, auth_headers, login, register


def test_init_db_is_idempotent(app):
    result = app.test_cli_runner().invoke(args=["init-db"])
    assert result.exit_code == 0
    assert "Database tables created." in result.output


def test_create_admin_creates_new_admin(app, client, audit_events):
    result = app.test_cli_runner().invoke(args=["create-admin", "root@test.com", "Password1"])

    assert result.exit_code == 0, result.output
    assert "ADMIN_CREATED_FROM_CLI" in audit_actions(audit_events)
    data = login(client, "root@test.com")
    assert data["user"]["status"] == "ADMIN"


def test_create_admin_promotes_existing_user(app, client):
    token = register(client, "bob@test.com")["access_token"]

    result = app.test_cli_runner().invoke(args=["create-admin", "bob@test.com", "ignored"])

    assert result.exit_code == 0, result.output
    resp = client.get("/api/v1/workspaces/all", headers=auth_headers(token))
    assert resp.status_code == 200


def test_create_admin_rejects_weak_password(app):
    result = app.test_cli_runner().invoke(args=["create-admin", "root@test.com", "weak"])

    assert result.exit_code != 0
    assert "PASSWORD" in result.output
