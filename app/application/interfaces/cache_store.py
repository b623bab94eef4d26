from __future__ import annotations
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol

from app.application.results import CacheEntry


class ICacheStore(Protocol):
    """Durable name -> archive mapping with TTL eviction."""

    cache_dir: Path

    def has(self, name: str) -> bool:
        ...

    def path(self, name: str) -> Optional[Path]:
        ...

    def get(self, name: str) -> Optional[CacheEntry]:
        ...

    def put(
        self,
        name: str,
        archive_path: str | Path,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> CacheEntry:
        ...

    def evict(self, name: str) -> bool:
        ...

    def sweep(
        self, max_age: Optional[float] = None, *, now: Optional[float] = None
    ) -> int:
        ...

    def entries(self) -> List[CacheEntry]:
        ...
