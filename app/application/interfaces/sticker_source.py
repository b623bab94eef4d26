from __future__ import annotations
from typing import Protocol

from app.core.pyd_schemas import StickerSet


class IStickerSetSource(Protocol):
    """Resolves a sticker set name to its ordered member list (one remote call)."""

    async def resolve(self, name: str) -> StickerSet:
        """Return the full sticker set.

        Raises NotFoundError when the set is unknown, TransientError on
        network/timeout problems. Never returns a partial set.
        """
        ...
