from fastapi import APIRouter, Depends

from app.application.interfaces import IUsageRecorder
from app.presentation.api.v1.dependencies.pack import get_usage_recorder
from app.presentation.api.v1.schemas.pack import StatsResponse

router = APIRouter(tags=["stats"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(usage: IUsageRecorder = Depends(get_usage_recorder)):
    """Total deliveries and the most recent ones."""
    return usage.get_stats()
