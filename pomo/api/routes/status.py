from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from ...service import PomoService
from ...status import StatusBoard, build_summary
from ..deps import get_board, get_service
from ..schemas import StatusOut, VisibilityRequest

router = APIRouter(prefix="/api/v1", tags=["status"])


def _status(board: StatusBoard, service: PomoService) -> StatusOut:
    hidden = board.is_primary_hidden()
    summary = board.latest() or build_summary(service.state(), service.today_count(), hidden)
    return StatusOut(**asdict(summary), primary_hidden=hidden)


@router.get("/status", response_model=StatusOut)
def get_status(
    board: StatusBoard = Depends(get_board),
    service: PomoService = Depends(get_service),
) -> StatusOut:
    return _status(board, service)


@router.post("/status/visibility", response_model=StatusOut)
def set_visibility(
    payload: VisibilityRequest,
    board: StatusBoard = Depends(get_board),
    service: PomoService = Depends(get_service),
) -> StatusOut:
    board.set_primary_hidden(payload.hidden)
    # Showing or hiding the window is a discrete change: resync right away.
    service.refresh_status()
    return _status(board, service)
