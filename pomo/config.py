from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
from typing import Mapping

from .status import VISIBLE_CADENCE
from .timer import DEFAULT_DURATION, TICK_MS

LOGGER = logging.getLogger(__name__)

SESSIONS_FILE_NAME = "sessions.json"


def default_data_dir() -> Path:
    return Path(__file__).resolve().parent / "data"


def _as_int(env: Mapping[str, str], key: str, default: int, minimum: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        LOGGER.warning("%s=%r is not an integer, using %s", key, raw, default)
        return default
    if value < minimum:
        LOGGER.warning("%s=%s is below %s, using %s", key, value, minimum, default)
        return default
    return value


@dataclass(frozen=True)
class PomoConfig:
    data_dir: Path = field(default_factory=default_data_dir)
    default_duration: int = DEFAULT_DURATION
    tick_ms: int = TICK_MS
    visible_cadence: int = VISIBLE_CADENCE
    log_level: str = "WARNING"

    @property
    def sessions_path(self) -> Path:
        return self.data_dir / SESSIONS_FILE_NAME

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> PomoConfig:
        source = os.environ if env is None else env
        data_dir = source.get("POMO_DATA_DIR", "").strip()
        level = source.get("POMO_LOG_LEVEL", "").strip().upper()
        if level and not isinstance(logging.getLevelName(level), int):
            LOGGER.warning("POMO_LOG_LEVEL=%r is not a logging level", level)
            level = ""
        return cls(
            data_dir=Path(data_dir).expanduser() if data_dir else default_data_dir(),
            default_duration=_as_int(source, "POMO_DEFAULT_DURATION", DEFAULT_DURATION, 0),
            tick_ms=_as_int(source, "POMO_TICK_MS", TICK_MS, 1),
            visible_cadence=_as_int(source, "POMO_VISIBLE_CADENCE", VISIBLE_CADENCE, 1),
            log_level=level or "WARNING",
        )
