from __future__ import annotations
from typing import Any, Dict, Protocol


class IUsageRecorder(Protocol):
    """Counter-style usage statistics. Failures are logged, never raised."""

    async def record(self, name: str, count: int = 0) -> None:
        ...

    def get_stats(self) -> Dict[str, Any]:
        ...
