"""
Health check with system metrics and pipeline dependency status
"""

import psutil
import os
import time
import logging
from datetime import datetime
from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict

from app.application.interfaces import ICacheStore
from app.core.config import settings
from utils.subprocess_utils import SubprocessError, safe_subprocess_run

logger = logging.getLogger(__name__)


class SystemHealth(BaseModel):
    """System health status model"""

    status: str
    timestamp: datetime
    uptime: float
    memory_usage: Dict[str, Any]
    disk_usage: Dict[str, Any]
    cpu_usage: float
    active_processes: int
    ffmpeg_available: bool
    cache: Dict[str, Any]

    model_config = ConfigDict()


class HealthChecker:
    """Health checking with system metrics, ffmpeg presence and cache size"""

    def __init__(self, cpu_interval: float = 0.1):
        self.start_time = time.time()
        self.cpu_interval = cpu_interval
        self._ffmpeg_available: Optional[bool] = None

    def get_memory_info(self) -> Dict[str, Any]:
        memory = psutil.virtual_memory()
        return {
            "total": memory.total,
            "available": memory.available,
            "used": memory.used,
            "percentage": memory.percent,
        }

    def get_disk_info(self, path: Optional[str] = None) -> Dict[str, Any]:
        """Disk usage of the volume holding the data directory"""
        path = path or settings.data_dir
        if not os.path.exists(path):
            path = "/"
        disk = psutil.disk_usage(path)
        return {
            "path": path,
            "total": disk.total,
            "used": disk.used,
            "free": disk.free,
            "percentage": (disk.used / disk.total) * 100 if disk.total else 0.0,
        }

    def get_cpu_info(self) -> float:
        return psutil.cpu_percent(interval=self.cpu_interval)

    def get_process_count(self) -> int:
        return len(psutil.pids())

    def check_ffmpeg(self) -> bool:
        """Whether the configured ffmpeg binary runs; checked once per process"""
        if self._ffmpeg_available is None:
            try:
                safe_subprocess_run(
                    [settings.ffmpeg_binary_path, "-version"], "FFmpeg version check"
                )
                self._ffmpeg_available = True
            except SubprocessError as e:
                logger.warning("ffmpeg is not available: %s", e.message)
                self._ffmpeg_available = False
        return self._ffmpeg_available

    def get_cache_info(self, cache: Optional[ICacheStore]) -> Dict[str, Any]:
        if cache is None:
            return {"entries": 0, "size_bytes": 0}
        entries = cache.entries()
        size = 0
        for entry in entries:
            try:
                size += entry.archive_path.stat().st_size
            except OSError:
                continue
        return {"entries": len(entries), "size_bytes": size}

    def get_system_health(self, cache: Optional[ICacheStore] = None) -> SystemHealth:
        """Get comprehensive system health status"""
        uptime = time.time() - self.start_time
        memory = self.get_memory_info()
        disk = self.get_disk_info()
        cpu = self.get_cpu_info()
        processes = self.get_process_count()
        ffmpeg_ok = self.check_ffmpeg()

        # Determine overall status
        status = "healthy"
        if memory["percentage"] > 90 or disk["percentage"] > 95 or cpu > 95:
            status = "unhealthy"
        elif (
            memory["percentage"] > 80
            or disk["percentage"] > 85
            or cpu > 80
            or not ffmpeg_ok
        ):
            # video stickers are archived unconverted without ffmpeg
            status = "warning"

        return SystemHealth(
            status=status,
            timestamp=datetime.now(),
            uptime=uptime,
            memory_usage=memory,
            disk_usage=disk,
            cpu_usage=cpu,
            active_processes=processes,
            ffmpeg_available=ffmpeg_ok,
            cache=self.get_cache_info(cache),
        )


# Global health checker instance
health_checker = HealthChecker()
