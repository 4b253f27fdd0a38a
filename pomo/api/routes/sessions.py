from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ...service import PomoService
from ..deps import get_service
from ..schemas import (
    BeginSessionRequest,
    CompleteSessionRequest,
    SessionOut,
    SessionStartedOut,
    TodayCountOut,
)

router = APIRouter(prefix="/api/v1", tags=["sessions"])


@router.post("/sessions", response_model=SessionStartedOut)
def begin_session(payload: BeginSessionRequest, service: PomoService = Depends(get_service)) -> SessionStartedOut:
    return SessionStartedOut(id=service.begin_session(payload.kind))


@router.post("/sessions/{session_id}/complete", status_code=204)
def complete_session(
    session_id: str,
    payload: CompleteSessionRequest,
    service: PomoService = Depends(get_service),
) -> None:
    service.complete_session(
        session_id,
        completed=payload.completed,
        actual_duration=payload.actual_duration,
        pause_count=payload.pause_count,
        pause_duration=payload.pause_duration,
    )


@router.get("/sessions", response_model=list[SessionOut])
def recent_sessions(
    limit: int | None = Query(default=None, ge=0),
    service: PomoService = Depends(get_service),
) -> list[SessionOut]:
    return [SessionOut(**asdict(item)) for item in service.recent(limit)]


@router.get("/sessions/today", response_model=TodayCountOut)
def todays_count(service: PomoService = Depends(get_service)) -> TodayCountOut:
    return TodayCountOut(count=service.today_count())
