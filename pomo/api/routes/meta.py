from __future__ import annotations

import platform

from fastapi import APIRouter, Depends

from ... import __version__
from ...service import PomoService
from ..deps import get_service
from ..schemas import MetaOut

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("/meta", response_model=MetaOut)
def meta(service: PomoService = Depends(get_service)) -> MetaOut:
    return MetaOut(
        app="Pomo",
        version=__version__,
        sessions_path=str(service.store.path),
        schema_version=service.store.version,
        platform=platform.platform(),
    )
