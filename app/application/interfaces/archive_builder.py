from __future__ import annotations
from pathlib import Path
from typing import Protocol

from app.application.results import Archive


class IArchiveBuilder(Protocol):
    """Packs a directory into a single compressed archive."""

    async def build(self, name: str, source_dir: str | Path) -> Archive:
        ...
