from __future__ import annotations

from fastapi import Request

from ..events import EventBroadcaster
from ..service import PomoService
from ..status import StatusBoard


def get_service(request: Request) -> PomoService:
    return request.app.state.service


def get_board(request: Request) -> StatusBoard:
    return request.app.state.board


def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster
