"""In-process event hub for HTTP and SSE clients."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from queue import Empty, Full, Queue
from threading import RLock


@dataclass(frozen=True, slots=True)
class LaunchEvent:
    """Serializable event emitted after an accepted command."""

    event_id: int
    event_type: str
    message: str
    timestamp: datetime
    resource_id: str | None = None
    unit_id: str | None = None
    source: str = "scheduler"


@dataclass(slots=True)
class _Subscriber:
    queue: Queue[LaunchEvent]
    resource_id: str | None

    def wants(self, event: LaunchEvent) -> bool:
        if self.resource_id is None or event.resource_id is None:
            return True
        return event.resource_id == self.resource_id


class EventHub:
    """Thread-safe pub/sub hub with bounded history and per-resource fan-out."""

    __slots__ = (
        "_events",
        "_subscribers",
        "_subscriber_queue_size",
        "_next_event_id",
        "_next_subscriber_id",
        "_dropped_event_count",
        "_lock",
    )

    def __init__(self, *, history_limit: int = 512, subscriber_queue_size: int = 256) -> None:
        self._events: deque[LaunchEvent] = deque(maxlen=history_limit)
        self._subscribers: dict[int, _Subscriber] = {}
        self._subscriber_queue_size = subscriber_queue_size
        self._next_event_id = 1
        self._next_subscriber_id = 1
        self._dropped_event_count = 0
        self._lock = RLock()

    def publish(
        self,
        *,
        event_type: str,
        message: str,
        resource_id: str | None = None,
        unit_id: str | None = None,
        source: str = "scheduler",
    ) -> LaunchEvent:
        with self._lock:
            event = LaunchEvent(
                event_id=self._next_event_id,
                event_type=event_type,
                message=message,
                timestamp=datetime.now(timezone.utc),
                resource_id=resource_id,
                unit_id=unit_id,
                source=source,
            )
            self._next_event_id += 1
            self._events.append(event)

            for subscriber in self._subscribers.values():
                if not subscriber.wants(event):
                    continue
                try:
                    subscriber.queue.put_nowait(event)
                except Full:
                    self._dropped_event_count += 1

            return event

    def list_recent(
        self,
        *,
        limit: int = 200,
        resource_id: str | None = None,
    ) -> list[LaunchEvent]:
        with self._lock:
            if limit <= 0:
                return []
            events = [
                event
                for event in self._events
                if resource_id is None or event.resource_id in (None, resource_id)
            ]
            return events[-limit:]

    def subscribe(
        self,
        *,
        after_event_id: int | None = None,
        resource_id: str | None = None,
    ) -> int:
        with self._lock:
            subscriber_id = self._next_subscriber_id
            self._next_subscriber_id += 1
            subscriber = _Subscriber(
                queue=Queue(maxsize=self._subscriber_queue_size),
                resource_id=resource_id,
            )

            for event in self._events:
                if after_event_id is not None and event.event_id <= after_event_id:
                    continue
                if not subscriber.wants(event):
                    continue
                try:
                    subscriber.queue.put_nowait(event)
                except Full:
                    self._dropped_event_count += 1
                    break

            self._subscribers[subscriber_id] = subscriber
            return subscriber_id

    def unsubscribe(self, subscriber_id: int) -> None:
        with self._lock:
            self._subscribers.pop(subscriber_id, None)

    def next_event(
        self,
        subscriber_id: int,
        *,
        timeout_seconds: float | None = None,
    ) -> LaunchEvent | None:
        with self._lock:
            subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None:
            return None

        try:
            return subscriber.queue.get(timeout=timeout_seconds)
        except Empty:
            return None

    @property
    def dropped_event_count(self) -> int:
        with self._lock:
            return self._dropped_event_count

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def last_event(self) -> LaunchEvent | None:
        with self._lock:
            if not self._events:
                return None
            return self._events[-1]
