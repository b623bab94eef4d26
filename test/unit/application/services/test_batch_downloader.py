from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from app.application.results import MaterializedAsset
from app.application.services.batch_downloader import BatchDownloader, batch_count_for
from app.core.exceptions import TransientError
from app.core.pyd_schemas import StickerSet

from conftest import make_sticker_set_payload


class RecordingFetcher:
    """Fetcher that tracks peak concurrency and which batch each call ran in."""

    def __init__(self, *, fail_indexes=(), fail_times=1_000, delay=0.01):
        self.fail_indexes = set(fail_indexes)
        self.fail_times = fail_times
        self.failures = {}
        self.delay = delay
        self.in_flight = 0
        self.peak = 0
        self.started = []
        self.events = []

    async def materialize(self, sticker, destination, *, index=0):
        self.started.append(index)
        self.events.append(("start", index))
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if index in self.fail_indexes and self.failures.get(index, 0) < self.fail_times:
                self.failures[index] = self.failures.get(index, 0) + 1
                raise TransientError(f"member {index} failed")
            target = Path(str(destination) + sticker.kind.extension)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"x")
            return MaterializedAsset(index=index, path=target, kind=sticker.kind, size=1)
        finally:
            self.in_flight -= 1
            self.events.append(("end", index))


def _set(count: int) -> StickerSet:
    return StickerSet.model_validate(make_sticker_set_payload("cats", count))


@pytest.mark.parametrize(
    "total,size,expected", [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 10, 3)]
)
def test_batch_count_for(total, size, expected):
    assert batch_count_for(total, size) == expected


@pytest.mark.asyncio
async def test_fetch_all_runs_ordered_batches_with_bounded_concurrency(tmp_path):
    fetcher = RecordingFetcher()
    downloader = BatchDownloader(fetcher, batch_size=10)

    result = await downloader.fetch_all(_set(25), tmp_path)

    assert result.batch_count == 3
    assert fetcher.peak <= 10
    assert [r.index for r in result.results] == list(range(1, 26))
    # no member of batch k+1 starts before every member of batch k finished
    for batch_end in (10, 20):
        next_start = fetcher.events.index(("start", batch_end + 1))
        for i in range(1, batch_end + 1):
            assert fetcher.events.index(("end", i)) < next_start


@pytest.mark.asyncio
async def test_fetch_all_names_files_by_position(tmp_path):
    downloader = BatchDownloader(RecordingFetcher(), batch_size=10)

    result = await downloader.fetch_all(_set(3), tmp_path)

    assert [r.path.name for r in result.results] == [
        "asset_1.webp",
        "asset_2.webp",
        "asset_3.webp",
    ]


@pytest.mark.asyncio
async def test_failed_member_does_not_abort_batch(tmp_path):
    fetcher = RecordingFetcher(fail_indexes={2, 12})
    downloader = BatchDownloader(fetcher, batch_size=10, member_retries=0)

    result = await downloader.fetch_all(_set(15), tmp_path)

    assert result.success_count == 13
    assert result.fail_count == 2
    failed = [r for r in result.results if not r.success]
    assert [r.index for r in failed] == [2, 12]
    assert "member 2 failed" in failed[0].error
    assert sorted(p.name for p in tmp_path.iterdir()) == sorted(
        f"asset_{i}.webp" for i in range(1, 16) if i not in (2, 12)
    )


@pytest.mark.asyncio
async def test_member_retry_recovers_transient_failure(tmp_path):
    fetcher = RecordingFetcher(fail_indexes={1}, fail_times=1)
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    downloader = BatchDownloader(fetcher, batch_size=10, member_retries=1, sleep=fake_sleep)
    result = await downloader.fetch_all(_set(2), tmp_path)

    assert result.success_count == 2
    assert fetcher.started.count(1) == 2
    assert sleeps == [0.5]


@pytest.mark.asyncio
async def test_no_member_retry_by_default(tmp_path):
    fetcher = RecordingFetcher(fail_indexes={1}, fail_times=1)
    downloader = BatchDownloader(fetcher, batch_size=10)

    result = await downloader.fetch_all(_set(1), tmp_path)

    assert result.fail_count == 1
    assert fetcher.started.count(1) == 1


@pytest.mark.asyncio
async def test_empty_set_makes_no_calls(tmp_path):
    fetcher = RecordingFetcher()
    result = await BatchDownloader(fetcher).fetch_all(_set(0), tmp_path)

    assert result.results == []
    assert result.batch_count == 0
    assert fetcher.started == []
