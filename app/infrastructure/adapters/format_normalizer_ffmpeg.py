from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from app.application.interfaces.format_normalizer import IFormatNormalizer
from app.application.results import ConversionResult, NormalizeSummary
from app.core.config import settings
from app.core.pyd_schemas import CANONICAL_EXTENSION, VIDEO_EXTENSION
from utils.subprocess_utils import SubprocessError, async_subprocess_run

logger = logging.getLogger(__name__)


def build_webm_to_webp_command(
    input_path: str, output_path: str, *, ffmpeg_binary: Optional[str] = None
) -> List[str]:
    """ffmpeg arguments for webm -> looping animated webp.

    Audio is stripped and the original pixel dimensions are kept (no scale,
    no pad filters).
    """
    return [
        ffmpeg_binary or settings.ffmpeg_binary_path,
        "-hide_banner",
        "-y",
        "-i",
        input_path,
        "-loop",
        "0",
        "-compression_level",
        str(settings.webp_compression_level),
        "-quality",
        str(settings.webp_quality),
        "-preset",
        "default",
        "-an",
        "-vsync",
        "0",
        "-f",
        "webp",
        output_path,
    ]


class FFmpegFormatNormalizer(IFormatNormalizer):
    """Convert every .webm in a directory to animated .webp, one at a time."""

    def __init__(
        self,
        *,
        ffmpeg_binary: Optional[str] = None,
        pacing_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary or settings.ffmpeg_binary_path
        self.pacing_delay = (
            settings.conversion_pacing_delay if pacing_delay is None else pacing_delay
        )
        self.timeout = float(timeout or settings.ffmpeg_timeout)
        self._sleep = sleep

    async def convert(self, input_path: str, output_path: str) -> None:
        """Convert one file; raises SubprocessError when no output was produced."""
        cmd = build_webm_to_webp_command(
            input_path, output_path, ffmpeg_binary=self.ffmpeg_binary
        )
        await async_subprocess_run(
            cmd, f"Convert {os.path.basename(input_path)}", timeout=self.timeout
        )
        if not os.path.exists(output_path):
            raise SubprocessError(f"Converted file missing: {output_path}", cmd)

    async def normalize_directory(
        self, path: str | Path, keep_original: bool = False
    ) -> NormalizeSummary:
        directory = Path(path)
        videos = sorted(
            p
            for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() == VIDEO_EXTENSION
        )
        summary = NormalizeSummary(total=len(videos))
        if not videos:
            logger.debug("No %s files to convert in %s", VIDEO_EXTENSION, directory)
            return summary

        logger.info("Converting %d video stickers in %s", len(videos), directory)
        for i, video in enumerate(videos):
            output = video.with_suffix(CANONICAL_EXTENSION)
            logger.info("[%d/%d] Converting %s", i + 1, len(videos), video.name)
            try:
                await self.convert(str(video), str(output))
                if not keep_original:
                    video.unlink(missing_ok=True)
                summary.converted += 1
                summary.results.append(ConversionResult(file=video.name, success=True))
            except (SubprocessError, OSError) as e:
                logger.error("Failed to convert %s: %s", video.name, e)
                # a half-written webp must not end up in the archive next to its source
                if output.exists():
                    output.unlink(missing_ok=True)
                summary.failed += 1
                summary.results.append(
                    ConversionResult(file=video.name, success=False, error=str(e))
                )

            if i < len(videos) - 1 and self.pacing_delay > 0:
                await self._sleep(self.pacing_delay)

        logger.info(
            "Conversion finished: %d converted, %d failed",
            summary.converted,
            summary.failed,
        )
        return summary
