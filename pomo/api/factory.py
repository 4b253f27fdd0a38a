from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..clock import Clock
from ..config import PomoConfig
from ..events import EventBroadcaster
from ..service import CommandError, PomoService
from ..status import StatusBoard
from .routes.health import router as health_router
from .routes.meta import router as meta_router
from .routes.sessions import router as sessions_router
from .routes.stats import router as stats_router
from .routes.status import router as status_router
from .routes.timer import router as timer_router


def create_app(config: PomoConfig | None = None, clock: Clock | None = None) -> FastAPI:
    resolved = config or PomoConfig.from_env()
    board = StatusBoard()
    broadcaster = EventBroadcaster()
    service = PomoService.build(
        resolved,
        clock=clock,
        display=board,
        surface_hidden=board.is_primary_hidden,
    )
    service.engine.add_sink(broadcaster)
    service.refresh_status()

    app = FastAPI(title="Pomo API", version=__version__)
    app.state.config = resolved
    app.state.service = service
    app.state.board = board
    app.state.broadcaster = broadcaster

    @app.exception_handler(CommandError)
    async def _command_error(_: Request, exc: CommandError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    app.include_router(health_router)
    app.include_router(meta_router)
    app.include_router(timer_router)
    app.include_router(sessions_router)
    app.include_router(stats_router)
    app.include_router(status_router)
    return app
