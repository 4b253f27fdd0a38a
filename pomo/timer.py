from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import threading

from .clock import Clock, RealClock
from .events import StatusObserver, TimerEventSink

LOGGER = logging.getLogger(__name__)

DEFAULT_DURATION = 25 * 60
TICK_MS = 100
SECOND_MS = 1000


@dataclass(frozen=True)
class TimerState:
    planned_duration: int = DEFAULT_DURATION
    remaining: int = DEFAULT_DURATION
    running: bool = False
    paused: bool = False
    label: str | None = None
    active_session_id: str | None = None


@dataclass
class _TickLoop:
    cancelled: threading.Event
    anchor_ms: int
    thread: threading.Thread | None = None


def format_countdown(seconds: int) -> str:
    minutes, sec = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{sec:02d}"


class TimerEngine:
    """Owns the single live timer and its tick loop.

    All state changes happen under ``_lock``; notifications are delivered
    after the lock is released. At most one tick loop is registered at a
    time, and a loop that has been replaced or cancelled never touches the
    state again.
    """

    def __init__(
        self,
        duration: int = DEFAULT_DURATION,
        clock: Clock | None = None,
        tick_ms: int = TICK_MS,
        status: StatusObserver | None = None,
    ) -> None:
        if duration < 0:
            raise ValueError("时长不能为负数")
        self.clock = clock or RealClock()
        self.tick_ms = max(1, int(tick_ms))
        self._lock = threading.Lock()
        self._state = TimerState(planned_duration=int(duration), remaining=int(duration))
        self._loop: _TickLoop | None = None
        self._last_thread: threading.Thread | None = None
        self._sinks: list[TimerEventSink] = []
        self._status = status

    def add_sink(self, sink: TimerEventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: TimerEventSink) -> None:
        with self._lock:
            self._sinks = [item for item in self._sinks if item is not sink]

    def attach_status(self, status: StatusObserver | None) -> None:
        with self._lock:
            self._status = status

    def state(self) -> TimerState:
        with self._lock:
            return self._state

    def configure(self, duration: int) -> TimerState:
        if duration < 0:
            raise ValueError("时长不能为负数")
        with self._lock:
            if self._state.running and not self._state.paused:
                # Reported as success to the caller; the countdown keeps going.
                LOGGER.debug("configure(%s) ignored while running", duration)
                return self._state
            self._state = replace(self._state, planned_duration=int(duration), remaining=int(duration))
            state = self._state
        self._refresh_status(state)
        return state

    def set_label(self, label: str | None) -> TimerState:
        clean = (label or "").strip() or None
        with self._lock:
            self._state = replace(self._state, label=clean)
            state = self._state
        self._refresh_status(state)
        return state

    def set_active_session(self, session_id: str | None) -> TimerState:
        with self._lock:
            self._state = replace(self._state, active_session_id=session_id)
            return self._state

    def start(self) -> TimerState:
        with self._lock:
            if self._state.running and not self._state.paused:
                return self._state
            previous = self._loop
            if previous is not None:
                previous.cancelled.set()
            loop = _TickLoop(cancelled=threading.Event(), anchor_ms=self.clock.monotonic_ms())
            loop.thread = threading.Thread(
                target=self._run_loop,
                args=(loop,),
                name="pomo-tick",
                daemon=True,
            )
            self._loop = loop
            self._last_thread = loop.thread
            self._state = replace(self._state, running=True, paused=False)
            state = self._state

        if previous is not None and previous.thread is not None:
            self._join_replaced(previous.thread)
        loop.thread.start()
        self._refresh_status(state)
        return state

    def pause(self) -> TimerState:
        with self._lock:
            if self._state.running:
                self._state = replace(self._state, paused=True)
            state = self._state
        self._refresh_status(state)
        return state

    def stop(self) -> TimerState:
        with self._lock:
            if self._loop is not None:
                self._loop.cancelled.set()
                self._loop = None
            self._state = replace(
                self._state,
                running=False,
                paused=False,
                remaining=self._state.planned_duration,
            )
            state = self._state
        self._refresh_status(state)
        return state

    def refresh_status(self) -> None:
        self._refresh_status(self.state())

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the most recently started tick loop to exit."""
        with self._lock:
            thread = self._last_thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _join_replaced(self, thread: threading.Thread) -> None:
        if thread is threading.current_thread() or not thread.is_alive():
            return
        thread.join(timeout=self.tick_ms * 10 / 1000)
        if thread.is_alive():
            LOGGER.warning("replaced tick loop still busy; it will exit without touching state")

    def _run_loop(self, loop: _TickLoop) -> None:
        last_second = loop.anchor_ms
        next_due = loop.anchor_ms + self.tick_ms
        while True:
            if self.clock.wait_until(loop.cancelled, next_due):
                return
            now = self.clock.monotonic_ms()
            next_due += self.tick_ms
            if next_due <= now:
                # Skip missed wake-ups; elapsed time drives the countdown.
                next_due = now + self.tick_ms - (now - loop.anchor_ms) % self.tick_ms

            progressed = False
            finished = False
            with self._lock:
                state = self._state
                if loop is not self._loop or not state.running or state.paused:
                    if loop is self._loop:
                        self._loop = None
                    return
                if now - last_second < SECOND_MS:
                    continue
                if state.remaining > 0:
                    state = replace(state, remaining=state.remaining - 1)
                    last_second = now
                    progressed = True
                if state.remaining == 0:
                    state = replace(state, running=False, paused=False)
                    self._loop = None
                    finished = True
                self._state = state

            if progressed:
                self._emit_progress(loop, state)
            if finished:
                self._emit_completed()
                self._refresh_status(state)
                return
            if not loop.cancelled.is_set():
                self._status_tick(state)

    def _sinks_snapshot(self) -> list[TimerEventSink]:
        with self._lock:
            return list(self._sinks)

    def _emit_progress(self, loop: _TickLoop, state: TimerState) -> None:
        for sink in self._sinks_snapshot():
            if loop.cancelled.is_set():
                # Stopped or replaced after the state was read.
                return
            try:
                sink.timer_progress(state)
            except Exception:
                LOGGER.warning("progress notification failed for %r", sink, exc_info=True)

    def _emit_completed(self) -> None:
        for sink in self._sinks_snapshot():
            try:
                sink.timer_completed()
            except Exception:
                LOGGER.warning("completion notification failed for %r", sink, exc_info=True)

    def _status_tick(self, state: TimerState) -> None:
        status = self._status
        if status is None:
            return
        try:
            status.on_tick(state)
        except Exception:
            LOGGER.warning("status update failed", exc_info=True)

    def _refresh_status(self, state: TimerState) -> None:
        status = self._status
        if status is None:
            return
        try:
            status.refresh(state)
        except Exception:
            LOGGER.warning("status refresh failed", exc_info=True)
