from __future__ import annotations

from app.application.interfaces import IArchiveBuilder
from app.application.pipeline.base import PipelineContext
from app.application.pipeline.pack.steps.common import BuildStep


class BuildArchiveStep(BuildStep):
    name = "build_archive"
    required_keys = ["stickers_dir", "sticker_set"]

    def __init__(self, archiver: IArchiveBuilder):
        self.archiver = archiver

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        sticker_set = context.get("sticker_set")
        archive = await self.archiver.build(sticker_set.name, context.get("stickers_dir"))
        context.update(archive=archive, archive_path=str(archive.path))
