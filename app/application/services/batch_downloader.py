from __future__ import annotations

import asyncio
import logging
import math
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from app.application.interfaces.asset_fetcher import IAssetFetcher
from app.application.results import BatchDownloadResult, PerMemberResult
from app.application.services.retry import RetryPolicy
from app.core.config import settings
from app.core.pyd_schemas import Sticker, StickerSet

logger = logging.getLogger(__name__)

ASSET_NAME_PREFIX = "asset_"


def batch_count_for(total: int, batch_size: int) -> int:
    return math.ceil(total / batch_size) if total > 0 else 0


class BatchDownloader:
    """Download every sticker of a set in fixed-size, strictly ordered batches.

    Members of one batch run concurrently; the next batch starts only after
    every fetch of the current batch settled. Peak concurrency therefore never
    exceeds ``batch_size`` and output names (``asset_<n>``) stay index-stable.
    A failed member is recorded and never aborts the batch or later batches.
    """

    def __init__(
        self,
        fetcher: IAssetFetcher,
        *,
        batch_size: Optional[int] = None,
        member_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.batch_size = max(1, int(batch_size or settings.download_batch_size))
        retries = (
            settings.download_member_retries
            if member_retries is None
            else member_retries
        )
        self.member_policy = RetryPolicy.from_retries(retries, base_delay=0.5)
        self._sleep = sleep

    async def fetch_all(
        self, sticker_set: StickerSet, work_dir: str | Path
    ) -> BatchDownloadResult:
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)

        stickers = list(sticker_set.stickers)
        total = len(stickers)
        outcome = BatchDownloadResult(
            batch_count=batch_count_for(total, self.batch_size)
        )

        for start in range(0, total, self.batch_size):
            batch = stickers[start : start + self.batch_size]
            end = start + len(batch)
            logger.info(
                "Downloading stickers %d-%d of %d (%s)",
                start + 1,
                end,
                total,
                sticker_set.name,
            )
            coroutines = [
                self._fetch_one(sticker, start + offset + 1, work_dir, total)
                for offset, sticker in enumerate(batch)
            ]
            batch_results: List[PerMemberResult] = await asyncio.gather(*coroutines)
            outcome.results.extend(batch_results)

        logger.info(
            "Sticker set %s downloaded: %d succeeded, %d failed",
            sticker_set.name,
            outcome.success_count,
            outcome.fail_count,
        )
        if outcome.fail_count:
            logger.warning(
                "%d stickers of %s failed to download", outcome.fail_count, sticker_set.name
            )
        return outcome

    async def _fetch_one(
        self, sticker: Sticker, index: int, work_dir: Path, total: int
    ) -> PerMemberResult:
        destination = work_dir / f"{ASSET_NAME_PREFIX}{index}"
        state = self.member_policy.start()
        last_error: Optional[Exception] = None

        while state.begin_attempt():
            try:
                asset = await self.fetcher.materialize(sticker, destination, index=index)
                return PerMemberResult(index=index, success=True, path=asset.path)
            except Exception as e:  # noqa: BLE001 - recorded per member
                last_error = e
                if state.exhausted:
                    break
                logger.info(
                    "Retrying sticker %d/%d after error: %s", index, total, str(e)
                )
                await self._sleep(state.next_delay())

        logger.error(
            "Failed to download sticker %d/%d: %s", index, total, str(last_error)
        )
        return PerMemberResult(index=index, success=False, error=str(last_error))
