from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles

from app.application.interfaces.usage_recorder import IUsageRecorder
from app.core.config import settings

logger = logging.getLogger(__name__)


def _empty_stats() -> Dict[str, Any]:
    return {"totalDownloads": 0, "downloadHistory": [], "lastUpdated": None}


class JsonUsageRecorder(IUsageRecorder):
    """Download counter with a capped history, stored as one JSON file."""

    def __init__(
        self,
        stats_file: Optional[str | Path] = None,
        *,
        history_limit: Optional[int] = None,
    ) -> None:
        self.stats_file = Path(stats_file or settings.stats_file)
        self.history_limit = int(history_limit or settings.stats_history_limit)
        self._lock = asyncio.Lock()
        self.stats = self._load()

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.stats_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                stats = _empty_stats()
                stats.update(data)
                return stats
        except FileNotFoundError:
            logger.info("Statistics file not found, starting from zero")
        except (OSError, ValueError) as e:
            logger.warning("Failed to load statistics %s: %s", self.stats_file, e)
        return _empty_stats()

    async def _save(self) -> None:
        os.makedirs(self.stats_file.parent, exist_ok=True)
        self.stats["lastUpdated"] = datetime.now(timezone.utc).isoformat()
        tmp_path = f"{self.stats_file}.tmp"
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(self.stats, ensure_ascii=False, indent=2))
        os.replace(tmp_path, self.stats_file)

    async def record(self, name: str, count: int = 0) -> None:
        try:
            async with self._lock:
                self.stats["totalDownloads"] = int(self.stats.get("totalDownloads", 0)) + 1
                history = list(self.stats.get("downloadHistory") or [])
                history.append(
                    {
                        "name": name,
                        "stickerCount": int(count),
                        "downloadTime": datetime.now(timezone.utc).isoformat(),
                    }
                )
                self.stats["downloadHistory"] = history[-self.history_limit :]
                await self._save()
            logger.info("Usage recorded: total downloads %d", self.stats["totalDownloads"])
        except Exception as e:  # noqa: BLE001 - statistics never fail a request
            logger.error("Failed to record usage for %s: %s", name, e)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "totalDownloads": self.stats.get("totalDownloads", 0),
            "recentDownloads": list(self.stats.get("downloadHistory") or [])[
                -settings.stats_recent_count :
            ],
            "lastUpdated": self.stats.get("lastUpdated"),
        }

