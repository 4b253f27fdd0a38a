from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TimerStateOut(BaseModel):
    planned_duration: int
    remaining: int
    running: bool
    paused: bool
    label: str | None = None
    active_session_id: str | None = None


class SessionOut(BaseModel):
    id: str
    label: str | None = None
    kind: str
    planned_duration: int
    actual_duration: int
    completed: bool
    start_time: datetime
    end_time: datetime | None = None
    interrupted: bool
    pause_count: int
    total_pause_duration: int


class SessionStartedOut(BaseModel):
    id: str


class TodayCountOut(BaseModel):
    count: int


class StatsOut(BaseModel):
    total_sessions: int
    completed_sessions: int
    completion_rate: float
    average_duration: float
    total_focus_time: int
    current_streak: int
    longest_streak: int
    named_completion_rate: float
    unnamed_completion_rate: float


class StatusOut(BaseModel):
    text: str
    status_line: str
    icon_text: str
    label: str | None = None
    tooltip: str
    sessions_today: int
    start_enabled: bool
    pause_enabled: bool
    stop_enabled: bool
    presets_enabled: bool
    primary_hidden: bool


class DurationRequest(BaseModel):
    seconds: int = Field(ge=0)


class LabelRequest(BaseModel):
    label: str | None = None


class PresetRequest(BaseModel):
    minutes: int = Field(gt=0)


class BeginSessionRequest(BaseModel):
    kind: str = Field(default="focus", min_length=1)


class CompleteSessionRequest(BaseModel):
    completed: bool
    actual_duration: int = Field(ge=0)
    pause_count: int = Field(default=0, ge=0)
    pause_duration: int = Field(default=0, ge=0)


class VisibilityRequest(BaseModel):
    hidden: bool


class HealthOut(BaseModel):
    status: str = Field(default="ok")


class MetaOut(BaseModel):
    app: str
    version: str
    sessions_path: str
    schema_version: int
    platform: str
