from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.core.pyd_schemas import StickerKind


@dataclass(slots=True, frozen=True)
class MaterializedAsset:
    index: int
    path: Path
    kind: StickerKind
    size: int = 0


@dataclass(slots=True)
class PerMemberResult:
    index: int  # 1-based position in the sticker set
    success: bool
    path: Optional[Path] = None
    error: Optional[str] = None


@dataclass(slots=True)
class BatchDownloadResult:
    results: List[PerMemberResult] = field(default_factory=list)
    batch_count: int = 0

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def fail_count(self) -> int:
        return sum(1 for r in self.results if not r.success)


@dataclass(slots=True)
class ConversionResult:
    file: str
    success: bool
    error: Optional[str] = None


@dataclass(slots=True)
class NormalizeSummary:
    converted: int = 0
    failed: int = 0
    total: int = 0
    results: List[ConversionResult] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class Archive:
    path: Path
    size: int
    created_at: float
    entry_count: int

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)


@dataclass(slots=True, frozen=True)
class CacheEntry:
    name: str
    archive_path: Path
    timestamp: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or "")

    @property
    def count(self) -> int:
        return int(self.metadata.get("count") or 0)


@dataclass(slots=True)
class DeliveryResult:
    success: bool
    attempts: int = 0
    ack: Any = None
    error: Optional[str] = None
    # archive vanished before a push attempt; no retry was made
    not_found: bool = False


class PackStatus(str, Enum):
    DELIVERED = "delivered"
    LINK = "link"
    OVERSIZE = "oversize"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(slots=True)
class PackDeliveryResult:
    status: PackStatus
    message: str
    name: str
    title: str = ""
    from_cache: bool = False
    success_count: int = 0
    fail_count: int = 0
    archive_size: int = 0
    url: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (PackStatus.DELIVERED, PackStatus.LINK)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "name": self.name,
            "title": self.title,
            "from_cache": self.from_cache,
            "success_count": self.success_count,
            "fail_count": self.fail_count,
            "archive_size": self.archive_size,
            "url": self.url,
            "error_code": self.error_code,
        }
