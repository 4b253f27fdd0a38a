from __future__ import annotations

from dataclasses import asdict
import queue
from threading import Lock
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .timer import TimerState


class TimerEventSink(Protocol):
    """Receiver of fire-and-forget timer notifications."""

    def timer_progress(self, state: TimerState) -> None:
        ...

    def timer_completed(self) -> None:
        ...


class StatusObserver(Protocol):
    def on_tick(self, state: TimerState) -> None:
        ...

    def refresh(self, state: TimerState) -> None:
        ...


class EventBroadcaster:
    """Fans timer events out to bounded subscriber queues.

    A subscriber whose queue is full is dropped; the timer never waits on it.
    """

    def __init__(self, maxsize: int = 200) -> None:
        self._lock = Lock()
        self._maxsize = maxsize
        self._subscribers: list[queue.Queue[dict[str, Any]]] = []

    def subscribe(self) -> queue.Queue[dict[str, Any]]:
        q: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=self._maxsize)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue[dict[str, Any]]) -> None:
        with self._lock:
            self._subscribers = [item for item in self._subscribers if item is not q]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def timer_progress(self, state: TimerState) -> None:
        self.publish({"event": "timer-update", **asdict(state)})

    def timer_completed(self) -> None:
        self.publish({"event": "timer-complete"})

    def publish(self, event: dict[str, Any]) -> None:
        with self._lock:
            alive: list[queue.Queue[dict[str, Any]]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                    alive.append(q)
                except queue.Full:
                    continue
            self._subscribers = alive
