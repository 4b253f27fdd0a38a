from __future__ import annotations

from datetime import datetime, timedelta, timezone
import threading
import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    def monotonic_ms(self) -> int:
        ...

    def wait_until(self, event: threading.Event, due_ms: int) -> bool:
        ...


class RealClock:
    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def monotonic_ms(self) -> int:
        return time.monotonic_ns() // 1_000_000

    def wait_until(self, event: threading.Event, due_ms: int) -> bool:
        timeout = max(0, due_ms - self.monotonic_ms()) / 1000
        return event.wait(timeout)


class FakeClock:
    """Simulated clock: time only moves when ``advance`` is called.

    Threads parked in ``wait_until`` are released when their due time is
    reached; ``advance`` steps in small increments and waits for those
    threads to park again (or exit) before moving on, so background loops
    observe every step.
    """

    def __init__(self, start: datetime | None = None, step_ms: int = 100) -> None:
        base = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if base.tzinfo is None:
            base = base.replace(tzinfo=timezone.utc)
        self._start = base
        self._step_ms = step_ms
        self._ms = 0
        self._cond = threading.Condition()
        self._sleepers: dict[threading.Thread, int] = {}
        self._known: set[threading.Thread] = set()

    def now(self) -> datetime:
        with self._cond:
            return self._start + timedelta(milliseconds=self._ms)

    def monotonic_ms(self) -> int:
        with self._cond:
            return self._ms

    def wait_until(self, event: threading.Event, due_ms: int) -> bool:
        me = threading.current_thread()
        with self._cond:
            self._known.add(me)
            self._sleepers[me] = due_ms
            self._cond.notify_all()
            try:
                while self._ms < due_ms and not event.is_set():
                    self._cond.wait(0.01)
            finally:
                self._sleepers.pop(me, None)
                self._cond.notify_all()
        return event.is_set()

    def advance(self, seconds: float) -> None:
        remaining = int(round(seconds * 1000))
        while remaining > 0:
            step = min(self._step_ms, remaining)
            with self._cond:
                self._ms += step
                self._cond.notify_all()
            remaining -= step
            self.settle()

    def settle(self, sleepers: int = 0, timeout: float = 5.0) -> None:
        """Block until known loop threads are parked in the future or gone.

        ``sleepers`` additionally requires that many parked threads, which
        lets a test wait for a freshly started loop to reach its first wait.
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            while not self._settled(sleepers):
                left = deadline - time.monotonic()
                if left <= 0:
                    raise RuntimeError("fake clock did not settle")
                self._cond.wait(min(left, 0.01))

    def _settled(self, sleepers: int) -> bool:
        self._known = {t for t in self._known if t.is_alive()}
        parked = 0
        for thread in self._known:
            due = self._sleepers.get(thread)
            if due is None or due <= self._ms:
                return False
            parked += 1
        return parked >= sleepers
