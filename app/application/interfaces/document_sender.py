from __future__ import annotations
from typing import Any, Optional, Protocol


class IDocumentSender(Protocol):
    """Push transport: sends a file to a chat and returns the acknowledgement."""

    async def send_document(
        self, chat_id: int | str, file_path: str, *, caption: Optional[str] = None
    ) -> Any:
        ...
