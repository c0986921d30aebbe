"""
tests/integration/test_event_stream.py — GET /workspaces/:id/events.

The stream is read frame by frame from the unbuffered test response; the
testing config pings every second, so reads skip "ping" frames.
"""

from __future__ import annotations

import json

import pytest

from trelloish.tests.integration.helpers import (
    add_project_member,
    add_workspace_member,
    auth_headers,
    make_project,
    make_task,
    make_workspace,
    register,
)


def _parse(frame: bytes) -> tuple[str, dict]:
    event, data = "message", {}
    for line in frame.decode().strip().splitlines():
        if line.startswith("event: "):
            event = line[len("event: "):]
        elif line.startswith("data: "):
            data = json.loads(line[len("data: "):])
    return event, data


def _next_event(frames, limit: int = 5) -> tuple[str, dict]:
    for _ in range(limit):
        event, data = _parse(next(frames))
        if event != "ping":
            return event, data
    raise AssertionError("no event frame received")


@pytest.fixture
def board(client, make_client):
    alice = register(make_client(), "alice@test.com")
    bob = register(make_client(), "bob@test.com")
    lead = alice["access_token"]

    ws = make_workspace(client, lead)
    add_workspace_member(client, lead, ws["id"], "bob@test.com")
    project = make_project(client, lead, ws["id"])
    add_project_member(client, lead, project["id"], bob["user"]["id"])
    task = make_task(client, lead, project["id"]).get_json()["data"]
    return {"alice": alice, "bob": bob, "workspace": ws, "task": task}


class TestEventStreamAccess:

    def test_missing_token_returns_401(self, client, board):
        resp = client.get(f"/api/v1/workspaces/{board['workspace']['id']}/events")
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"

    def test_bad_query_token_returns_401(self, client, board):
        resp = client.get(f"/api/v1/workspaces/{board['workspace']['id']}/events?access_token=nope")
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"

    def test_non_member_returns_403(self, client, make_client, board):
        outsider = register(make_client(), "eve@test.com")
        resp = client.get(
            f"/api/v1/workspaces/{board['workspace']['id']}/events",
            headers=auth_headers(outsider["access_token"]),
        )
        assert resp.status_code == 403

    def test_unknown_workspace_returns_404(self, client, board):
        resp = client.get("/api/v1/workspaces/999/events", headers=auth_headers(board["alice"]["access_token"]))
        assert resp.status_code == 404


class TestEventStreamDelivery:

    def test_member_receives_status_changes(self, client, board, task_events):
        ws_id = board["workspace"]["id"]
        resp = client.get(f"/api/v1/workspaces/{ws_id}/events?access_token={board['bob']['access_token']}")

        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"
        assert resp.headers["Cache-Control"] == "no-cache"

        assert task_events.subscriber_count(ws_id) == 0
        frames = iter(resp.response)
        try:
            assert _next_event(frames) == ("connected", {"workspace_id": ws_id})
            assert task_events.subscriber_count(ws_id) == 1

            patched = client.patch(
                f"/api/v1/tasks/{board['task']['id']}",
                json={"status": "IN_PROGRESS"},
                headers=auth_headers(board["alice"]["access_token"]),
            )
            assert patched.status_code == 200

            event, data = _next_event(frames)
            assert event == "TaskStatusChanged"
            assert data["task_id"] == board["task"]["id"]
            assert data["old_status"] == "TODO"
            assert data["new_status"] == "IN_PROGRESS"
            assert data["changed_by"] == board["alice"]["user"]["id"]
        finally:
            resp.close()

        assert task_events.subscriber_count(ws_id) == 0

    def test_unread_stream_leaves_no_subscriber(self, client, board, task_events):
        ws_id = board["workspace"]["id"]
        resp = client.get(f"/api/v1/workspaces/{ws_id}/events?access_token={board['bob']['access_token']}")

        assert resp.status_code == 200
        resp.close()

        assert task_events.subscriber_count(ws_id) == 0
