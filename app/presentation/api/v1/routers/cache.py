"""
Pull-delivery surface: serves cached archives by file name
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from app.application.interfaces import ICacheStore
from app.presentation.api.v1.dependencies.pack import get_cache_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/{filename}")
async def download_cached_archive(
    filename: str, cache: ICacheStore = Depends(get_cache_store)
):
    cache_dir = Path(cache.cache_dir).resolve()
    path = (cache_dir / filename).resolve()
    if path.parent != cache_dir or path.suffix != ".zip" or not path.is_file():
        logger.info("Cached archive not found: %s", filename)
        raise HTTPException(status_code=404, detail={"error": "Archive not found"})
    return FileResponse(path, media_type="application/zip", filename=path.name)
