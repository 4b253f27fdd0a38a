from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Callable, Protocol

from .timer import TimerState, format_countdown

APP_NAME = "Pomo"
PRESET_MINUTES = (5, 15, 25, 45)
VISIBLE_CADENCE = 15
HIDDEN_CADENCE = 1


@dataclass(frozen=True)
class StatusSummary:
    text: str
    status_line: str
    icon_text: str
    label: str | None
    tooltip: str
    sessions_today: int
    start_enabled: bool
    pause_enabled: bool
    stop_enabled: bool
    presets_enabled: bool


class StatusDisplay(Protocol):
    def update(self, summary: StatusSummary) -> None:
        ...


def build_summary(state: TimerState, sessions_today: int, hidden: bool = False) -> StatusSummary:
    active = state.running and not state.paused
    shown = state.remaining if state.running else state.planned_duration
    text = format_countdown(shown)
    minutes, seconds = divmod(max(0, state.remaining), 60)

    if active:
        icon_text = f"{minutes}m" if minutes > 0 else f"{seconds}s"
    elif state.paused:
        icon_text = "||"
    else:
        icon_text = ""

    suffix = f"今日完成 {sessions_today} 次"
    if active and hidden:
        tooltip = f"{APP_NAME} - 剩余 {max(minutes, 1)} 分钟 ({_progress_percent(state)}%) | {suffix}"
    elif active:
        tooltip = f"{APP_NAME} - 运行中 ({text}) | {suffix}"
    elif state.paused:
        tooltip = f"{APP_NAME} - 已暂停 ({text}) | {suffix}"
    else:
        tooltip = f"{APP_NAME} - 就绪 | {suffix}"

    return StatusSummary(
        text=text,
        status_line=f"{text} 剩余" if state.running else f"{text} 就绪",
        icon_text=icon_text,
        label=state.label,
        tooltip=tooltip,
        sessions_today=sessions_today,
        start_enabled=not active,
        pause_enabled=active,
        stop_enabled=state.running,
        presets_enabled=not state.running,
    )


def _progress_percent(state: TimerState) -> int:
    if state.planned_duration <= 0:
        return 100
    done = state.planned_duration - state.remaining
    return int(done * 100 / state.planned_duration)


class StatusBoard:
    """In-memory indicator: keeps the latest summary and the primary surface visibility."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._latest: StatusSummary | None = None
        self._primary_hidden = False
        self.update_count = 0

    def update(self, summary: StatusSummary) -> None:
        with self._lock:
            self._latest = summary
            self.update_count += 1

    def latest(self) -> StatusSummary | None:
        with self._lock:
            return self._latest

    def set_primary_hidden(self, hidden: bool) -> None:
        with self._lock:
            self._primary_hidden = bool(hidden)

    def is_primary_hidden(self) -> bool:
        with self._lock:
            return self._primary_hidden


class StatusSynchronizer:
    """Pushes status summaries to the display with an adaptive cadence.

    Progress ticks resynchronize every ``hidden_cadence`` ticks while the
    primary surface is hidden and every ``visible_cadence`` ticks while it
    is visible. ``refresh`` always pushes immediately and leaves the tick
    counter alone.
    """

    def __init__(
        self,
        display: StatusDisplay,
        count_today: Callable[[], int],
        surface_hidden: Callable[[], bool] | None = None,
        visible_cadence: int = VISIBLE_CADENCE,
        hidden_cadence: int = HIDDEN_CADENCE,
    ) -> None:
        self.display = display
        self.count_today = count_today
        self.surface_hidden = surface_hidden or (lambda: False)
        self.visible_cadence = max(1, int(visible_cadence))
        self.hidden_cadence = max(1, int(hidden_cadence))
        self._lock = Lock()
        self._counter = 0

    def on_tick(self, state: TimerState) -> None:
        hidden = self.surface_hidden()
        interval = self.hidden_cadence if hidden else self.visible_cadence
        with self._lock:
            self._counter += 1
            if self._counter < interval:
                return
            self._counter = 0
        self._push(state, hidden)

    def refresh(self, state: TimerState) -> None:
        self._push(state, self.surface_hidden())

    def _push(self, state: TimerState, hidden: bool) -> None:
        self.display.update(build_summary(state, self.count_today(), hidden))
