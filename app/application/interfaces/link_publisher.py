from __future__ import annotations
from typing import Optional, Protocol


class ILinkPublisher(Protocol):
    """Pull delivery surface: turns an existing archive into a download URL."""

    async def publish(self, archive_path: str) -> Optional[str]:
        """Return a stable URL for the archive, or None if it cannot be exposed."""
        ...
