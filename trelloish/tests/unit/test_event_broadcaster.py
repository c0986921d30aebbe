"""
Unit tests for TaskEventBroadcaster and SSE frame encoding.
"""

from __future__ import annotations

import json

from trelloish.app.services.event_service import (
    SSEMessage,
    TaskEventBroadcaster,
    TaskStatusChanged,
)


def _event(workspace_id: int = 1) -> TaskStatusChanged:
    return TaskStatusChanged(
        task_id=10,
        project_id=5,
        workspace_id=workspace_id,
        old_status="TODO",
        new_status="DONE",
        title="Ship",
        changed_by=2,
    )


def test_encode_full_frame():
    frame = SSEMessage(data={"a": 1}, event="TaskStatusChanged", id="3", retry=500).encode()
    assert frame == 'id: 3\nevent: TaskStatusChanged\nretry: 500\ndata: {"a": 1}\n\n'


def test_encode_default_event_omits_event_line():
    assert SSEMessage(data={}).encode() == "data: {}\n\n"


def test_publish_reaches_only_audience_in_workspace():
    broadcaster = TaskEventBroadcaster()
    member = broadcaster.subscribe(1, user_id=2)
    removed = broadcaster.subscribe(1, user_id=3)
    elsewhere = broadcaster.subscribe(9, user_id=2)

    reached = broadcaster.publish(_event(), audience={2})

    assert reached == 1
    message = member.queue.get_nowait()
    assert message.data["new_status"] == "DONE"
    assert removed.queue.empty()
    assert elsewhere.queue.empty()


def test_sequence_ids_increase():
    broadcaster = TaskEventBroadcaster()
    sub = broadcaster.subscribe(1, 2)

    broadcaster.publish(_event(), [2])
    broadcaster.publish(_event(), [2])

    assert [sub.queue.get_nowait().id for _ in range(2)] == ["1", "2"]


def test_unsubscribe_is_idempotent():
    broadcaster = TaskEventBroadcaster()
    sub = broadcaster.subscribe(1, 2)

    broadcaster.unsubscribe(sub)
    broadcaster.unsubscribe(sub)

    assert broadcaster.subscriber_count(1) == 0
    assert broadcaster.publish(_event(), [2]) == 0


def test_stream_yields_connected_then_events_and_unsubscribes():
    broadcaster = TaskEventBroadcaster()
    sub = broadcaster.subscribe(1, 2)
    broadcaster.publish(_event(), [2])

    frames = list(broadcaster.stream(sub, ping_interval=0.01, max_events=1))

    assert frames[0].startswith("event: connected\n")
    data_line = frames[1].strip().splitlines()[-1]
    assert json.loads(data_line[len("data: "):])["task_id"] == 10
    assert broadcaster.subscriber_count(1) == 0


def test_stream_pings_when_idle():
    broadcaster = TaskEventBroadcaster()
    sub = broadcaster.subscribe(1, 2)
    stream = broadcaster.stream(sub, ping_interval=0.01)

    next(stream)
    assert next(stream) == "event: ping\ndata: {}\n\n"

    stream.close()
    assert broadcaster.subscriber_count(1) == 0


def test_listen_subscribes_on_first_pull():
    broadcaster = TaskEventBroadcaster()
    stream = broadcaster.listen(1, 2, ping_interval=0.01)

    assert broadcaster.subscriber_count(1) == 0
    assert next(stream).startswith("event: connected\n")
    assert broadcaster.subscriber_count(1) == 1

    stream.close()
    assert broadcaster.subscriber_count(1) == 0


def test_listen_closed_before_start_leaves_nothing():
    broadcaster = TaskEventBroadcaster()
    broadcaster.listen(1, 2).close()
    assert broadcaster.subscriber_count(1) == 0
