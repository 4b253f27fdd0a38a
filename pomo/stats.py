from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from .store import SessionRecord


@dataclass(frozen=True)
class SessionStats:
    total_sessions: int = 0
    completed_sessions: int = 0
    completion_rate: float = 0.0
    average_duration: float = 0.0
    total_focus_time: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    named_completion_rate: float = 0.0
    unnamed_completion_rate: float = 0.0


def format_duration(seconds: int) -> str:
    total = max(0, int(seconds))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}小时{minutes:02d}分{sec:02d}秒"
    return f"{minutes}分{sec:02d}秒"


def build_stats(
    records: Iterable[SessionRecord],
    days: int | None = None,
    now: datetime | None = None,
) -> SessionStats:
    ref = now or datetime.now(tz=timezone.utc)
    sessions = list(records)
    if days is not None:
        cutoff = ref - timedelta(days=days)
        sessions = [item for item in sessions if item.start_time >= cutoff]

    if not sessions:
        return SessionStats()

    total = len(sessions)
    durations = [item.actual_duration for item in sessions if item.completed]
    completed = len(durations)
    focus_time = sum(durations)

    current_streak = 0
    for item in _chronological(sessions, newest_first=True):
        if not item.completed:
            break
        current_streak += 1

    longest_streak = 0
    run = 0
    for item in _chronological(sessions):
        if item.completed:
            run += 1
            longest_streak = max(longest_streak, run)
        else:
            run = 0

    named = [item for item in sessions if item.label is not None]
    unnamed = [item for item in sessions if item.label is None]

    return SessionStats(
        total_sessions=total,
        completed_sessions=completed,
        completion_rate=completed / total,
        average_duration=(focus_time / completed) if completed else 0.0,
        total_focus_time=focus_time,
        current_streak=current_streak,
        longest_streak=longest_streak,
        named_completion_rate=_completion_rate(named),
        unnamed_completion_rate=_completion_rate(unnamed),
    )


def recent_sessions(records: Iterable[SessionRecord], limit: int | None = None) -> list[SessionRecord]:
    ordered = _chronological(list(records), newest_first=True)
    if limit is not None:
        ordered = ordered[: max(0, limit)]
    return ordered


def count_completed_today(records: Iterable[SessionRecord], now: datetime | None = None) -> int:
    # Civil date in the local timezone, not a rolling 24 hours.
    ref = now or datetime.now().astimezone()
    if ref.tzinfo is None:
        ref = ref.astimezone()
    today = ref.date()
    tz = ref.tzinfo
    return sum(
        1 for item in records if item.completed and item.start_time.astimezone(tz).date() == today
    )


def _completion_rate(sessions: list[SessionRecord]) -> float:
    if not sessions:
        return 0.0
    return sum(1 for item in sessions if item.completed) / len(sessions)


def _chronological(sessions: list[SessionRecord], newest_first: bool = False) -> list[SessionRecord]:
    # Insertion order breaks ties between equal start times.
    indexed = sorted(enumerate(sessions), key=lambda pair: (pair[1].start_time, pair[0]), reverse=newest_first)
    return [item for _, item in indexed]
