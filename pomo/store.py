from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any
import uuid

from .clock import Clock, RealClock

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Keys written by the first (version 0) history format.
_LEGACY_KEYS = {
    "name": "label",
    "session_type": "kind",
    "duration": "planned_duration",
    "pause_duration": "total_pause_duration",
}


def _to_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_text(text: str) -> datetime:
    value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class SessionRecord:
    id: str
    label: str | None
    kind: str
    planned_duration: int
    start_time: datetime
    actual_duration: int = 0
    completed: bool = False
    end_time: datetime | None = None
    interrupted: bool = False
    pause_count: int = 0
    total_pause_duration: int = 0

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "planned_duration": self.planned_duration,
            "actual_duration": self.actual_duration,
            "completed": self.completed,
            "start_time": _to_text(self.start_time),
            "end_time": _to_text(self.end_time) if self.end_time is not None else None,
            "interrupted": self.interrupted,
            "pause_count": self.pause_count,
            "total_pause_duration": self.total_pause_duration,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SessionRecord:
        label = payload.get("label")
        end_time = payload.get("end_time")
        return cls(
            id=str(payload["id"]),
            label=str(label) if label is not None else None,
            kind=str(payload.get("kind", "focus")),
            planned_duration=int(payload.get("planned_duration", 0)),
            actual_duration=int(payload.get("actual_duration", 0)),
            completed=bool(payload.get("completed", False)),
            start_time=_from_text(str(payload["start_time"])),
            end_time=_from_text(str(end_time)) if end_time else None,
            interrupted=bool(payload.get("interrupted", False)),
            pause_count=int(payload.get("pause_count", 0)),
            total_pause_duration=int(payload.get("total_pause_duration", 0)),
        )


@dataclass
class SessionDatabase:
    sessions: list[SessionRecord] = field(default_factory=list)
    version: int = SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": [item.to_dict() for item in self.sessions],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SessionDatabase:
        payload = migrate(payload)
        return cls(
            sessions=[SessionRecord.from_dict(item) for item in payload.get("sessions", [])],
            version=int(payload.get("version", SCHEMA_VERSION)),
        )


def migrate(payload: dict[str, Any]) -> dict[str, Any]:
    version = int(payload.get("version", 0) or 0)
    if version >= SCHEMA_VERSION:
        return payload

    sessions: list[dict[str, Any]] = []
    for item in payload.get("sessions", []):
        upgraded = dict(item)
        for old, new in _LEGACY_KEYS.items():
            if old in upgraded and new not in upgraded:
                upgraded[new] = upgraded.pop(old)
        sessions.append(upgraded)
    LOGGER.info("migrated session history from version %s to %s", version, SCHEMA_VERSION)
    return {"sessions": sessions, "version": SCHEMA_VERSION}


def load_database(path: Path) -> SessionDatabase:
    if not path.exists():
        return SessionDatabase()
    try:
        with path.open("r", encoding="utf-8") as fp:
            payload = json.load(fp)
        if not isinstance(payload, dict):
            raise ValueError("session history must be a JSON object")
        return SessionDatabase.from_dict(payload)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        LOGGER.warning("failed to load session history %s, starting empty: %s", path, exc)
        return SessionDatabase()


def save_database(database: SessionDatabase, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with temp_path.open("w", encoding="utf-8") as fp:
            json.dump(database.to_dict(), fp, indent=2, ensure_ascii=False)
            fp.write("\n")
        temp_path.replace(path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    return path


class SessionStore:
    """Append-only session history, rewritten in full after every mutation."""

    def __init__(self, path: Path, clock: Clock | None = None) -> None:
        self.path = Path(path)
        self.clock = clock or RealClock()
        self._lock = Lock()
        self._db = load_database(self.path)

    @property
    def version(self) -> int:
        with self._lock:
            return self._db.version

    def begin_session(
        self,
        kind: str,
        label: str | None,
        planned_duration: int,
    ) -> str:
        record = SessionRecord(
            id=str(uuid.uuid4()),
            label=label,
            kind=kind,
            planned_duration=int(planned_duration),
            start_time=self.clock.now(),
        )
        with self._lock:
            self._db.sessions.append(record)
            self._persist()
        return record.id

    def complete_session(
        self,
        session_id: str,
        completed: bool,
        actual_duration: int,
        pause_count: int = 0,
        pause_duration: int = 0,
    ) -> bool:
        with self._lock:
            for idx, item in enumerate(self._db.sessions):
                if item.id != session_id:
                    continue
                if not item.is_open:
                    LOGGER.debug("session %s already closed", session_id)
                    return False
                self._db.sessions[idx] = replace(
                    item,
                    completed=completed,
                    actual_duration=max(0, int(actual_duration)),
                    pause_count=max(0, int(pause_count)),
                    total_pause_duration=max(0, int(pause_duration)),
                    end_time=self.clock.now(),
                    interrupted=not completed,
                )
                self._persist()
                return True
        LOGGER.debug("complete for unknown session %s ignored", session_id)
        return False

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            for item in self._db.sessions:
                if item.id == session_id:
                    return item
        return None

    def snapshot(self) -> list[SessionRecord]:
        with self._lock:
            return list(self._db.sessions)

    def _persist(self) -> None:
        try:
            save_database(self._db, self.path)
        except OSError:
            LOGGER.exception("failed to write session history %s", self.path)
