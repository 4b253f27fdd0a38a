from __future__ import annotations

from dataclasses import asdict
import json
import queue
from typing import Iterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...events import EventBroadcaster
from ...service import PomoService
from ...timer import TimerState
from ..deps import get_broadcaster, get_service
from ..schemas import DurationRequest, LabelRequest, PresetRequest, TimerStateOut

router = APIRouter(prefix="/api/v1", tags=["timer"])


def _out(state: TimerState) -> TimerStateOut:
    return TimerStateOut(**asdict(state))


@router.get("/timer/state", response_model=TimerStateOut)
def timer_state(service: PomoService = Depends(get_service)) -> TimerStateOut:
    return _out(service.state())


@router.post("/timer/duration", response_model=TimerStateOut)
def set_duration(payload: DurationRequest, service: PomoService = Depends(get_service)) -> TimerStateOut:
    return _out(service.configure(payload.seconds))


@router.post("/timer/label", response_model=TimerStateOut)
def set_label(payload: LabelRequest, service: PomoService = Depends(get_service)) -> TimerStateOut:
    return _out(service.set_label(payload.label))


@router.post("/timer/preset", response_model=TimerStateOut)
def apply_preset(payload: PresetRequest, service: PomoService = Depends(get_service)) -> TimerStateOut:
    return _out(service.apply_preset(payload.minutes))


@router.post("/timer/start", response_model=TimerStateOut)
def start_timer(service: PomoService = Depends(get_service)) -> TimerStateOut:
    return _out(service.start())


@router.post("/timer/pause", response_model=TimerStateOut)
def pause_timer(service: PomoService = Depends(get_service)) -> TimerStateOut:
    return _out(service.pause())


@router.post("/timer/stop", response_model=TimerStateOut)
def stop_timer(service: PomoService = Depends(get_service)) -> TimerStateOut:
    return _out(service.stop())


@router.get("/timer/stream")
def timer_stream(broadcaster: EventBroadcaster = Depends(get_broadcaster)) -> StreamingResponse:
    subscriber = broadcaster.subscribe()

    def event_iter() -> Iterator[str]:
        try:
            while True:
                try:
                    event = subscriber.get(timeout=10)
                    yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
                except queue.Empty:
                    yield ": keepalive\n\n"
        finally:
            broadcaster.unsubscribe(subscriber)

    return StreamingResponse(event_iter(), media_type="text/event-stream")
