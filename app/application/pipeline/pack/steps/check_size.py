from __future__ import annotations

import logging
from typing import Optional

from app.application.pipeline.base import PipelineContext
from app.application.pipeline.pack.steps.common import BuildStep
from app.core.config import settings
from app.core.exceptions import OversizeError

logger = logging.getLogger(__name__)


class CheckSizeStep(BuildStep):
    """Stop the run when the archive is over the delivery limit.

    No re-splitting or re-compression is attempted; an oversize archive is
    neither cached nor sent.
    """

    name = "check_size"
    required_keys = ["archive"]

    def __init__(self, limit_bytes: Optional[int] = None):
        self.limit_bytes = int(limit_bytes or settings.max_archive_size_bytes)

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        archive = context.get("archive")
        logger.info(
            "Archive size %.2f MB (limit %.2f MB)",
            archive.size_mb,
            self.limit_bytes / (1024 * 1024),
        )
        if archive.size > self.limit_bytes:
            raise OversizeError(
                f"Archive is {archive.size_mb:.2f} MB, over the "
                f"{self.limit_bytes / (1024 * 1024):.0f} MB delivery limit",
                size=archive.size,
                limit=self.limit_bytes,
            )
