from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ...service import PomoService
from ..deps import get_service
from ..schemas import StatsOut

router = APIRouter(prefix="/api/v1", tags=["stats"])


@router.get("/stats", response_model=StatsOut)
def get_stats(
    days: int | None = Query(default=None, ge=0),
    service: PomoService = Depends(get_service),
) -> StatsOut:
    return StatsOut(**asdict(service.stats(days)))
