from __future__ import annotations

from app.application.pipeline.base import BaseStep, PipelineContext

CACHE_HIT_KEY = "cache_hit"


class BuildStep(BaseStep):
    """A step that only runs when the sticker set was not served from cache."""

    def can_skip(self, context: PipelineContext) -> bool:
        return bool(context.get(CACHE_HIT_KEY))
