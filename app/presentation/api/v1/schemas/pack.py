from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class JobQueuedResponse(BaseModel):
    job_id: str


class JobStatusResponse(BaseModel):
    status: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class CachedPackInfo(BaseModel):
    name: str
    title: str
    sticker_count: int
    cached_at: float
    size_bytes: int
    url: str


class PackListResponse(BaseModel):
    packs: List[CachedPackInfo]
    total: int


class DownloadRecord(BaseModel):
    name: str
    stickerCount: int
    downloadTime: str


class StatsResponse(BaseModel):
    totalDownloads: int
    recentDownloads: List[DownloadRecord]
    lastUpdated: Optional[str] = None
