import os
import uuid
import json
import logging
from typing import Any, Dict

from filelock import FileLock
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends
from urllib.parse import quote

from app.application.interfaces import ICacheStore
from app.application.use_cases.pack_deliver import DeliverStickerPackUseCase
from app.core.config import settings
from app.core.pyd_schemas import DeliverPackRequest
from app.presentation.api.v1.dependencies.pack import (
    get_cache_store,
    get_deliver_pack_use_case,
)
from app.presentation.api.v1.schemas.pack import (
    CachedPackInfo,
    JobQueuedResponse,
    JobStatusResponse,
    PackListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packs", tags=["packs"])


def _job_store_lock() -> FileLock:
    return FileLock(settings.job_store_file + ".lock", timeout=5)


def load_job_store() -> Dict[str, Any]:
    if not os.path.exists(settings.job_store_file):
        return {}
    with _job_store_lock():
        try:
            with open(settings.job_store_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read job store: %s", e)
            return {}


def update_job(job_id: str, **fields: Any) -> None:
    """Read-modify-write one job record under the job store lock."""
    os.makedirs(os.path.dirname(settings.job_store_file) or ".", exist_ok=True)
    with _job_store_lock():
        job_store: Dict[str, Any] = {}
        if os.path.exists(settings.job_store_file):
            try:
                with open(settings.job_store_file, "r", encoding="utf-8") as f:
                    job_store = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Job store unreadable, starting fresh: %s", e)
        job = job_store.setdefault(job_id, {"status": "pending", "result": None, "error": None})
        job.update(fields)
        tmp_path = settings.job_store_file + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(job_store, f)
        os.replace(tmp_path, settings.job_store_file)


async def process_job(
    use_case: DeliverStickerPackUseCase, job_id: str, name: str, request: DeliverPackRequest
) -> None:
    try:
        result = await use_case.execute(name, request.chat_id, caption=request.caption)
        update_job(
            job_id,
            status="done" if result.ok else "failed",
            result=result.to_dict(),
            error=None if result.ok else result.message,
        )
    except Exception as e:  # noqa: BLE001 - job must always leave "pending"
        logger.exception("Job %s failed", job_id)
        update_job(job_id, status="failed", error=str(e))


@router.post("/{name}/deliver", response_model=JobQueuedResponse)
async def deliver_pack(
    name: str,
    request: DeliverPackRequest,
    background_tasks: BackgroundTasks,
    use_case: DeliverStickerPackUseCase = Depends(get_deliver_pack_use_case),
):
    """Queue delivery of a sticker set to a chat."""
    if not name.strip():
        raise HTTPException(status_code=422, detail={"error": "Sticker set name is required"})

    job_id = str(uuid.uuid4())
    update_job(job_id, status="pending", result=None, error=None)
    background_tasks.add_task(process_job, use_case, job_id, name, request)
    return JobQueuedResponse(job_id=job_id)


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str):
    job = load_job_store().get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail={"error": "Job not found"})
    return job


@router.get("", response_model=PackListResponse)
async def list_packs(cache: ICacheStore = Depends(get_cache_store)):
    """Sticker sets currently in the cache, newest first."""
    base_url = settings.public_base_url.rstrip("/")
    packs = []
    for entry in sorted(cache.entries(), key=lambda e: e.timestamp, reverse=True):
        try:
            size = entry.archive_path.stat().st_size
        except OSError:
            continue
        packs.append(
            CachedPackInfo(
                name=entry.name,
                title=entry.title or entry.name,
                sticker_count=entry.count,
                cached_at=entry.timestamp,
                size_bytes=size,
                url=f"{base_url}/cache/{quote(entry.archive_path.name)}",
            )
        )
    return PackListResponse(packs=packs, total=len(packs))
