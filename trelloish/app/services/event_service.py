"""
services/event_service.py — Task event broadcast and Server-Sent Events.

TaskEventBroadcaster is built once by the app factory and handed to the
task service and the events route; there is no module-level instance.

Subscribers register per workspace with the identity that was verified
when they connected. That identity is never re-checked; publish only
filters on the audience passed in by the caller (the workspace's current
members), so a user removed from the workspace stops receiving events.

Request threads publish while streaming threads block on their queues,
so the registry is guarded by a threading.Lock.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)

TASK_STATUS_CHANGED = "TaskStatusChanged"


@dataclass(frozen=True)
class TaskStatusChanged:
    task_id: int
    project_id: int
    workspace_id: int
    old_status: str
    new_status: str
    title: str
    changed_by: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SSEMessage:
    """One frame of a text/event-stream response."""
    data: dict
    event: str = "message"
    id: str | None = None
    retry: int | None = None

    def encode(self) -> str:
        lines = []

        if self.id:
            lines.append(f"id: {self.id}")

        if self.event != "message":
            lines.append(f"event: {self.event}")

        if self.retry:
            lines.append(f"retry: {self.retry}")

        lines.append(f"data: {json.dumps(self.data)}")

        # Frames end with a blank line
        return "\n".join(lines) + "\n\n"


@dataclass(eq=False)
class Subscriber:
    workspace_id: int
    user_id: int
    queue: queue.Queue = field(default_factory=queue.Queue)
    created_at: float = field(default_factory=time.time)


class TaskEventBroadcaster:

    def __init__(self) -> None:
        self._subscribers: dict[int, set[Subscriber]] = defaultdict(set)
        self._lock = threading.Lock()
        self._sequence = 0

    def subscribe(self, workspace_id: int, user_id: int) -> Subscriber:
        subscriber = Subscriber(workspace_id=workspace_id, user_id=user_id)
        with self._lock:
            self._subscribers[workspace_id].add(subscriber)
        logger.debug("Subscriber user_id=%s joined workspace %s", user_id, workspace_id)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            channel = self._subscribers.get(subscriber.workspace_id)
            if channel is None:
                return
            channel.discard(subscriber)
            if not channel:
                del self._subscribers[subscriber.workspace_id]

    def subscriber_count(self, workspace_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(workspace_id, ()))

    def publish(self, event: TaskStatusChanged, audience: Iterable[int]) -> int:
        """
        Delivers `event` to the workspace's subscribers whose user is in
        `audience`. Returns the number of subscribers reached.
        """
        allowed = set(audience)
        with self._lock:
            self._sequence += 1
            message = SSEMessage(
                data=event.to_dict(),
                event=TASK_STATUS_CHANGED,
                id=str(self._sequence),
            )
            targets = [
                s for s in self._subscribers.get(event.workspace_id, ())
                if s.user_id in allowed
            ]

        for subscriber in targets:
            subscriber.queue.put(message)

        logger.debug(
            "Published %s for task %s to %d subscriber(s)",
            TASK_STATUS_CHANGED, event.task_id, len(targets),
        )
        return len(targets)

    def listen(
            self,
            workspace_id: int,
            user_id: int,
            ping_interval: float = 30,
            max_events: int | None = None,
    ) -> Iterator[str]:
        """
        Like `stream`, but subscribes on the first pull. A response that is
        never iterated leaves nothing in the registry.
        """
        subscriber = self.subscribe(workspace_id, user_id)
        yield from self.stream(subscriber, ping_interval=ping_interval, max_events=max_events)

    def stream(
            self,
            subscriber: Subscriber,
            ping_interval: float = 30,
            max_events: int | None = None,
    ) -> Iterator[str]:
        """
        Yields encoded frames for `subscriber`, with a ping every
        `ping_interval` seconds of silence. Unsubscribes when the client
        goes away or after `max_events` task events.
        """
        delivered = 0
        try:
            yield SSEMessage(
                data={"workspace_id": subscriber.workspace_id},
                event="connected",
            ).encode()

            while max_events is None or delivered < max_events:
                try:
                    message = subscriber.queue.get(timeout=ping_interval)
                except queue.Empty:
                    yield SSEMessage(data={}, event="ping").encode()
                    continue
                yield message.encode()
                delivered += 1
        finally:
            self.unsubscribe(subscriber)
