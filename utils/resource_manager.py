"""
Resource management utilities for per-request working directories
"""

import os
import time
import logging
import shutil
import uuid
from contextlib import asynccontextmanager
from typing import Optional, AsyncIterator
from app.core.config import settings

logger = logging.getLogger(__name__)


def temp_base_dir() -> str:
    """Base directory for request working dirs (TEMP_BASE_DIR overrides it)."""
    return os.getenv("TEMP_BASE_DIR", os.path.join(settings.data_dir, "tmp"))


@asynccontextmanager
async def managed_temp_directory(prefix: Optional[str] = None) -> AsyncIterator[str]:
    """Async context manager for a temporary directory with guaranteed cleanup.

    The directory is removed on every exit path, including exceptions and
    task cancellation.
    """

    base_dir = temp_base_dir()
    os.makedirs(base_dir, exist_ok=True)

    if prefix is None:
        dir_prefix = os.path.join(base_dir, settings.temp_dir_prefix)
    else:
        # Ensure trailing underscore once, and join with base_dir
        safe_prefix = prefix.rstrip("_") + "_"
        dir_prefix = os.path.join(base_dir, safe_prefix)

    temp_dir = f"{dir_prefix}{uuid.uuid4().hex}"
    os.makedirs(temp_dir, exist_ok=True)

    try:
        yield temp_dir
    finally:
        cleanup_temp_directory(temp_dir)


def cleanup_temp_directory(temp_dir: str) -> bool:
    """Remove a working directory; idempotent, returns True if it is gone."""
    if not os.path.exists(temp_dir):
        return True
    try:
        shutil.rmtree(temp_dir)
        logger.info("Cleaned up temporary directory: %s", temp_dir)
    except (OSError, PermissionError, shutil.Error) as e:
        logger.warning("Failed to clean up temp directory %s: %s", temp_dir, str(e))
        shutil.rmtree(temp_dir, ignore_errors=True)
    return not os.path.exists(temp_dir)


def cleanup_old_temp_directories(
    base_pattern: Optional[str] = None, max_age_hours: Optional[float] = None
) -> int:
    """Remove working dirs left behind by a crashed process; returns how many."""
    if base_pattern is None:
        base_pattern = settings.temp_dir_prefix
    if max_age_hours is None:
        max_age_hours = settings.temp_cleanup_age_hours

    base_dir = temp_base_dir()
    removed = 0
    if not os.path.isdir(base_dir):
        return removed

    current_time = time.time()
    max_age_seconds = max_age_hours * 3600
    for item in os.listdir(base_dir):
        if not item.startswith(base_pattern):
            continue
        path = os.path.join(base_dir, item)
        if not os.path.isdir(path):
            continue
        try:
            age_seconds = current_time - os.path.getmtime(path)
        except OSError as e:
            logger.warning("Failed to stat temp directory %s: %s", path, str(e))
            continue
        if age_seconds > max_age_seconds:
            logger.info(
                "Cleaning up old temp directory: %s (age: %.1fh)",
                path,
                age_seconds / 3600,
            )
            if cleanup_temp_directory(path):
                removed += 1
    return removed
