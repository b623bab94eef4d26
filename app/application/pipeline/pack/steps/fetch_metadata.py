from __future__ import annotations

from app.application.interfaces import IStickerSetSource
from app.application.pipeline.base import PipelineContext
from app.application.pipeline.pack.steps.common import BuildStep


class FetchMetadataStep(BuildStep):
    name = "fetch_metadata"

    def __init__(self, source: IStickerSetSource):
        self.source = source

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        sticker_set = await self.source.resolve(context.input["name"])
        context.update(
            sticker_set=sticker_set,
            title=sticker_set.title,
            sticker_count=sticker_set.count,
        )
