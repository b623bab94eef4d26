from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, constr, model_validator


class StickerKind(str, Enum):
    static = "static"
    animated = "animated"
    video = "video"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def needs_conversion(self) -> bool:
        """Only video stickers (webm) are rewritten to animated webp."""
        return self is StickerKind.video


_EXTENSIONS = {
    StickerKind.static: ".webp",
    StickerKind.animated: ".tgs",
    StickerKind.video: ".webm",
}

# Legacy video container and the canonical animated-image container
VIDEO_EXTENSION = ".webm"
CANONICAL_EXTENSION = ".webp"


class Sticker(BaseModel):
    """One member of a sticker set, as described by getStickerSet."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    file_id: constr(strip_whitespace=True, min_length=1)
    file_unique_id: Optional[str] = None
    kind: StickerKind = StickerKind.static
    emoji: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def derive_kind(cls, data: Any) -> Any:
        # Bot API flags: is_animated -> tgs, is_video -> webm, neither -> webp
        if isinstance(data, dict) and "kind" not in data:
            data = dict(data)
            if data.get("is_animated"):
                data["kind"] = StickerKind.animated
            elif data.get("is_video"):
                data["kind"] = StickerKind.video
            else:
                data["kind"] = StickerKind.static
        return data


class StickerSet(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: constr(min_length=1)
    title: str = ""
    sticker_type: Optional[str] = None
    stickers: List[Sticker] = []

    @property
    def count(self) -> int:
        return len(self.stickers)


class DeliverPackRequest(BaseModel):
    chat_id: int | str
    caption: Optional[str] = None
