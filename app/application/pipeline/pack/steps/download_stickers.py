from __future__ import annotations

import logging
from pathlib import Path

from app.application.pipeline.base import PipelineContext
from app.application.pipeline.pack.steps.common import BuildStep
from app.application.services.batch_downloader import BatchDownloader
from app.core.exceptions import PartialStateError

logger = logging.getLogger(__name__)

STICKERS_SUBDIR = "stickers"


class DownloadStickersStep(BuildStep):
    name = "download_stickers"
    required_keys = ["sticker_set"]

    def __init__(self, downloader: BatchDownloader):
        self.downloader = downloader

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        sticker_set = context.get("sticker_set")
        stickers_dir = Path(context.input["work_dir"]) / STICKERS_SUBDIR

        result = await self.downloader.fetch_all(sticker_set, stickers_dir)
        # caption and cache metadata count what was actually downloaded
        context.update(
            download_result=result,
            stickers_dir=str(stickers_dir),
            sticker_count=result.success_count,
        )

        if result.success_count == 0:
            raise PartialStateError(
                f"None of the {sticker_set.count} stickers of {sticker_set.name} "
                "could be downloaded",
                path=str(stickers_dir),
            )
