from __future__ import annotations

import asyncio
import logging

from app.application.interfaces import ICacheStore
from app.application.pipeline.base import PipelineContext
from app.application.pipeline.pack.steps.common import BuildStep

logger = logging.getLogger(__name__)


class CachePutStep(BuildStep):
    name = "cache_put"
    required_keys = ["archive", "sticker_set", "download_result"]

    def __init__(self, cache: ICacheStore):
        self.cache = cache

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        sticker_set = context.get("sticker_set")
        archive = context.get("archive")
        download = context.get("download_result")
        metadata = {"title": sticker_set.title, "count": download.success_count}
        try:
            entry = await asyncio.to_thread(
                self.cache.put, sticker_set.name, archive.path, metadata
            )
        except OSError as e:
            # still deliverable from the working copy
            logger.error("Failed to cache sticker set %s: %s", sticker_set.name, e)
            context.set("cache_put_error", str(e))
            return
        context.update(cache_entry=entry, archive_path=str(entry.archive_path))
