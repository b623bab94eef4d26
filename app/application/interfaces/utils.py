from __future__ import annotations
from typing import Protocol


class IClock(Protocol):
    """Provides current epoch time for deterministic testing."""

    def now(self) -> float:
        ...
