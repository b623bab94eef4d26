from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from app.application.interfaces.asset_fetcher import IAssetFetcher
from app.application.results import MaterializedAsset
from app.core.exceptions import NotFoundError, TransientError
from app.core.pyd_schemas import Sticker
from app.infrastructure.adapters.telegram_api import TelegramBotApi

logger = logging.getLogger(__name__)


class TelegramStickerFetcher(IAssetFetcher):
    """Download one sticker: getFile -> file_path, then stream the bytes.

    The file lands at ``{destination}{ext}`` where ext follows the sticker
    kind (.webp / .tgs / .webm).
    """

    def __init__(self, api: Optional[TelegramBotApi] = None) -> None:
        self.api = api or TelegramBotApi()

    async def materialize(
        self, sticker: Sticker, destination: Path, *, index: int = 0
    ) -> MaterializedAsset:
        destination = Path(destination)
        target = destination.with_name(destination.name + sticker.kind.extension)

        try:
            file_info = await self.api.get_file(sticker.file_id)
        except NotFoundError as e:
            # an unresolvable member is a per-item hiccup, not a missing set
            raise TransientError(
                f"Could not resolve sticker {index}: {e.message}", operation="getFile"
            ) from e

        file_path = (file_info or {}).get("file_path")
        if not file_path:
            raise TransientError(
                f"Sticker {index} has no downloadable file path", operation="getFile"
            )

        size = await self.api.download(file_path, target)
        logger.debug("Sticker %d saved to %s", index, target)
        return MaterializedAsset(
            index=index,
            path=target,
            kind=sticker.kind,
            size=size or (os.path.getsize(target) if target.exists() else 0),
        )
