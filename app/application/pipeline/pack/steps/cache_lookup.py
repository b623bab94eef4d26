from __future__ import annotations

import logging

from app.application.interfaces import ICacheStore
from app.application.pipeline.base import BaseStep, PipelineContext
from app.application.pipeline.pack.steps.common import CACHE_HIT_KEY

logger = logging.getLogger(__name__)


class CacheLookupStep(BaseStep):
    name = "cache_lookup"

    def __init__(self, cache: ICacheStore):
        self.cache = cache

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        name = context.input["name"]
        entry = self.cache.get(name)
        if entry is None:
            logger.info("Cache miss for sticker set %s", name)
            context.set(CACHE_HIT_KEY, False)
            return

        logger.info("Cache hit for sticker set %s (%s)", name, entry.archive_path)
        context.update(
            cache_hit=True,
            cache_entry=entry,
            archive_path=str(entry.archive_path),
            title=entry.title,
            sticker_count=entry.count,
        )
