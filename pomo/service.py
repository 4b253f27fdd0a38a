from __future__ import annotations

from contextlib import contextmanager
import logging
from threading import Lock, RLock
from typing import Callable, Iterator

from .clock import Clock, RealClock
from .config import PomoConfig
from .stats import SessionStats, build_stats, count_completed_today, recent_sessions
from .status import PRESET_MINUTES, StatusDisplay, StatusSynchronizer
from .store import SessionRecord, SessionStore
from .timer import TimerEngine, TimerState

LOGGER = logging.getLogger(__name__)

DEFAULT_KIND = "focus"


class CommandError(Exception):
    """A command failed; ``str(exc)`` is the message shown to the caller."""


@contextmanager
def _command(name: str) -> Iterator[None]:
    try:
        yield
    except (ValueError, OSError) as exc:
        LOGGER.debug("command %s rejected: %s", name, exc)
        raise CommandError(str(exc)) from exc


class PomoService:
    """Request/response commands over the timer engine and session store.

    Also keeps the bookkeeping for the active session: running seconds and
    pauses are counted, the session is completed when the countdown
    finishes and closed as interrupted when the timer is stopped. Commands
    that read the timer and then act on it hold ``_command_lock``.
    """

    def __init__(self, engine: TimerEngine, store: SessionStore, clock: Clock | None = None) -> None:
        self.engine = engine
        self.store = store
        self.clock = clock or engine.clock
        self._lock = Lock()
        self._command_lock = RLock()
        self._elapsed = 0
        self._pause_count = 0
        self._paused_at: int | None = None
        self._pause_ms = 0
        engine.add_sink(self)

    @classmethod
    def build(
        cls,
        config: PomoConfig,
        clock: Clock | None = None,
        display: StatusDisplay | None = None,
        surface_hidden: Callable[[], bool] | None = None,
    ) -> PomoService:
        clock = clock or RealClock()
        store = SessionStore(config.sessions_path, clock=clock)
        engine = TimerEngine(duration=config.default_duration, clock=clock, tick_ms=config.tick_ms)
        service = cls(engine, store, clock)
        if display is not None:
            engine.attach_status(
                StatusSynchronizer(
                    display,
                    count_today=service.today_count,
                    surface_hidden=surface_hidden,
                    visible_cadence=config.visible_cadence,
                )
            )
        return service

    # ----- timer commands -----
    def state(self) -> TimerState:
        return self.engine.state()

    def configure(self, duration: int) -> TimerState:
        with _command("configure"):
            return self.engine.configure(int(duration))

    def apply_preset(self, minutes: int) -> TimerState:
        with _command("preset"):
            if minutes not in PRESET_MINUTES:
                raise ValueError(f"不支持的快捷时长：{minutes} 分钟")
            return self.engine.configure(minutes * 60)

    def set_label(self, label: str | None) -> TimerState:
        with _command("label"):
            return self.engine.set_label(label)

    def start(self) -> TimerState:
        with _command("start"), self._command_lock:
            current = self.engine.state()
            if current.running and not current.paused:
                return current
            if not current.running and current.remaining == 0 and current.planned_duration > 0:
                # A finished countdown restarts from its planned duration.
                current = self.engine.configure(current.planned_duration)
            with self._lock:
                if self._paused_at is not None:
                    self._pause_ms += self.clock.monotonic_ms() - self._paused_at
                    self._paused_at = None
            if current.active_session_id is None:
                self.begin_session(DEFAULT_KIND)
            return self.engine.start()

    def pause(self) -> TimerState:
        with _command("pause"), self._command_lock:
            before = self.engine.state()
            after = self.engine.pause()
            if before.running and not before.paused and after.paused:
                with self._lock:
                    self._pause_count += 1
                    self._paused_at = self.clock.monotonic_ms()
            return after

    def stop(self) -> TimerState:
        with _command("stop"), self._command_lock:
            before = self.engine.state()
            self.engine.stop()
            if before.active_session_id is not None:
                self._close_session(before, completed=False)
            return self.engine.state()

    # ----- session commands -----
    def begin_session(self, kind: str = DEFAULT_KIND) -> str:
        with _command("begin_session"), self._command_lock:
            clean = (kind or "").strip()
            if not clean:
                raise ValueError("会话类型不能为空")
            state = self.engine.state()
            session_id = self.store.begin_session(clean, state.label, state.planned_duration)
            self.engine.set_active_session(session_id)
            self._reset_counters()
            return session_id

    def complete_session(
        self,
        session_id: str,
        completed: bool,
        actual_duration: int,
        pause_count: int = 0,
        pause_duration: int = 0,
    ) -> None:
        with _command("complete_session"), self._command_lock:
            if actual_duration < 0 or pause_count < 0 or pause_duration < 0:
                raise ValueError("时长与次数不能为负数")
            self.store.complete_session(session_id, completed, actual_duration, pause_count, pause_duration)
            self._release_session(session_id)

    def stats(self, days: int | None = None) -> SessionStats:
        with _command("stats"):
            if days is not None and days < 0:
                raise ValueError("天数不能为负数")
            return build_stats(self.store.snapshot(), days=days, now=self.clock.now())

    def recent(self, limit: int | None = None) -> list[SessionRecord]:
        with _command("recent"):
            if limit is not None and limit < 0:
                raise ValueError("条数不能为负数")
            return recent_sessions(self.store.snapshot(), limit)

    def refresh_status(self) -> None:
        self.engine.refresh_status()

    def today_count(self) -> int:
        return count_completed_today(self.store.snapshot(), now=self.clock.now().astimezone())

    # ----- engine notifications -----
    def timer_progress(self, state: TimerState) -> None:
        session_id = state.active_session_id
        if session_id is None or session_id != self.engine.state().active_session_id:
            return
        with self._lock:
            self._elapsed += 1

    def timer_completed(self) -> None:
        state = self.engine.state()
        if state.active_session_id is not None:
            self._close_session(state, completed=True)

    # ----- internals -----
    def _close_session(self, state: TimerState, completed: bool) -> None:
        session_id = state.active_session_id
        if session_id is None:
            return
        now = self.clock.monotonic_ms()
        with self._lock:
            pause_ms = self._pause_ms
            if self._paused_at is not None:
                pause_ms += now - self._paused_at
            pause_count = self._pause_count
            elapsed = self._elapsed
        self.store.complete_session(
            session_id,
            completed=completed,
            actual_duration=elapsed,
            pause_count=pause_count,
            pause_duration=pause_ms // 1000,
        )
        self._release_session(session_id)

    def _release_session(self, session_id: str) -> None:
        if self.engine.state().active_session_id == session_id:
            self.engine.set_active_session(None)
            self._reset_counters()

    def _reset_counters(self) -> None:
        with self._lock:
            self._elapsed = 0
            self._pause_count = 0
            self._paused_at = None
            self._pause_ms = 0
