from __future__ import annotations
from pathlib import Path
from typing import Protocol

from app.core.pyd_schemas import Sticker
from app.application.results import MaterializedAsset


class IAssetFetcher(Protocol):
    """Downloads a single sticker into local storage."""

    async def materialize(
        self, sticker: Sticker, destination: Path, *, index: int = 0
    ) -> MaterializedAsset:
        """Resolve the sticker file and stream it to ``destination`` + kind extension.

        No retries. Any failure raises TransientError and leaves no file
        under the final name.
        """
        ...
