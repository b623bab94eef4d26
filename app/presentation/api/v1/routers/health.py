"""
Health check API endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from app.application.interfaces import ICacheStore
from app.core.monitoring import health_checker, SystemHealth
from app.presentation.api.v1.dependencies.pack import get_cache_store

router = APIRouter(tags=["health"])


@router.get("/health", response_model=SystemHealth)
async def health_check(cache: ICacheStore = Depends(get_cache_store)):
    """
    Health check endpoint that returns system status, ffmpeg availability
    and cache size
    """
    return await run_in_threadpool(health_checker.get_system_health, cache)


@router.get("/")
async def root():
    return {"message": "Sticker Pack Delivery API is running", "status": "healthy"}
