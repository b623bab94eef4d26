from __future__ import annotations
from pathlib import Path
from typing import Protocol

from app.application.results import NormalizeSummary


class IFormatNormalizer(Protocol):
    """Rewrites video stickers (webm) in a directory to animated webp."""

    async def normalize_directory(
        self, path: str | Path, keep_original: bool = False
    ) -> NormalizeSummary:
        ...
