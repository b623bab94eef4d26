from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
import zipfile
from pathlib import Path
from typing import List, Optional

from app.application.interfaces.archive_builder import IArchiveBuilder
from app.application.results import Archive
from app.core.config import settings
from app.core.exceptions import PartialStateError, TransientError

logger = logging.getLogger(__name__)


def archive_name_for(name: str) -> str:
    return f"{name}.zip"


def collect_files(source_dir: Path) -> List[Path]:
    """All regular files below ``source_dir``, in stable order."""
    return sorted(p for p in source_dir.rglob("*") if p.is_file())


class ZipArchiveBuilder(IArchiveBuilder):
    """Pack a sticker directory into ``{output_dir}/{name}.zip``.

    Entries keep their path relative to the source directory (no wrapper
    folder) and are deflated at the configured level (9 by default). The zip is
    written under a temporary name and renamed over any stale archive, so a
    failed build never leaves a truncated archive behind.
    """

    def __init__(
        self,
        output_dir: str | Path,
        *,
        compression_level: Optional[int] = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.compression_level = (
            settings.archive_compression_level
            if compression_level is None
            else compression_level
        )

    async def build(self, name: str, source_dir: str | Path) -> Archive:
        return await asyncio.to_thread(self._build_sync, name, Path(source_dir))

    def _build_sync(self, name: str, source_dir: Path) -> Archive:
        if not source_dir.is_dir():
            raise PartialStateError(
                f"Source directory does not exist: {source_dir}", path=str(source_dir)
            )

        files = collect_files(source_dir)
        if not files:
            raise PartialStateError(
                f"Source directory is empty, nothing to archive: {source_dir}",
                path=str(source_dir),
            )

        total_size = sum(f.stat().st_size for f in files)
        total_mb = total_size / (1024 * 1024)
        logger.info(
            "Archiving %d files (%.2f MB) from %s", len(files), total_mb, source_dir
        )
        if total_mb > settings.archive_warn_size_mb:
            logger.warning(
                "Source files (%.2f MB) are close to the %.0f MB delivery limit",
                total_mb,
                settings.max_archive_size_mb,
            )

        archive_path = self.output_dir / archive_name_for(name)
        tmp_path = archive_path.with_name(
            f".{archive_path.name}.{uuid.uuid4().hex[:8]}.tmp"
        )

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(
                tmp_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compression_level,
            ) as zf:
                for i, file_path in enumerate(files, start=1):
                    zf.write(file_path, arcname=file_path.relative_to(source_dir).as_posix())
                    if i % 10 == 0:
                        logger.debug("Archived %d/%d files", i, len(files))
            os.replace(tmp_path, archive_path)
        except (OSError, zipfile.BadZipFile) as e:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
            logger.error("Failed to write archive %s: %s", archive_path, e)
            raise TransientError(
                f"Failed to write archive {archive_path.name}: {e}", operation="archive"
            ) from e

        size = archive_path.stat().st_size
        logger.info("Archive created: %s (%.2f MB)", archive_path, size / (1024 * 1024))
        return Archive(
            path=archive_path,
            size=size,
            created_at=time.time(),
            entry_count=len(files),
        )
