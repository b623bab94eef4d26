from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from app.application.interfaces.sticker_source import IStickerSetSource
from app.core.exceptions import TransientError
from app.core.pyd_schemas import StickerSet
from app.infrastructure.adapters.telegram_api import TelegramBotApi

logger = logging.getLogger(__name__)


class TelegramStickerSetFetcher(IStickerSetSource):
    """Resolve a sticker set name through getStickerSet."""

    def __init__(self, api: Optional[TelegramBotApi] = None) -> None:
        self.api = api or TelegramBotApi()

    async def resolve(self, name: str) -> StickerSet:
        if not name or not name.strip():
            raise ValueError("Sticker set name must be non-empty")

        logger.info("Fetching sticker set info: %s", name)
        payload = await self.api.get_sticker_set(name)
        try:
            sticker_set = StickerSet.model_validate(payload)
        except ValidationError as e:
            # a malformed reply is treated like any other bad round trip
            raise TransientError(
                f"Malformed sticker set payload for {name}: {e.error_count()} errors",
                operation="getStickerSet",
            ) from e

        logger.info(
            "Sticker set %s (%s) has %d stickers",
            sticker_set.name,
            sticker_set.title,
            sticker_set.count,
        )
        return sticker_set
