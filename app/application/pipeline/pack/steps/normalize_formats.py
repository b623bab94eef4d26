from __future__ import annotations

import logging

from app.application.interfaces import IFormatNormalizer
from app.application.pipeline.base import PipelineContext
from app.application.pipeline.pack.steps.common import BuildStep

logger = logging.getLogger(__name__)


class NormalizeFormatsStep(BuildStep):
    name = "normalize_formats"
    required_keys = ["stickers_dir"]

    def __init__(self, normalizer: IFormatNormalizer, *, keep_original: bool = False):
        self.normalizer = normalizer
        self.keep_original = keep_original

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        stickers_dir = context.get("stickers_dir")
        try:
            summary = await self.normalizer.normalize_directory(
                stickers_dir, keep_original=self.keep_original
            )
        except OSError as e:
            # unconverted webm files are still valid stickers; archive them as-is
            logger.error("Format conversion aborted for %s: %s", stickers_dir, e)
            return
        context.set("normalize_summary", summary)
        if summary.failed:
            logger.warning(
                "%d of %d video stickers kept in their original format",
                summary.failed,
                summary.total,
            )
