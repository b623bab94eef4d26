from __future__ import annotations

import asyncio
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from app.application.results import PackStatus
from app.application.use_cases.pack_deliver import DeliverStickerPackUseCase
from app.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    OversizeError,
    TransientError,
)
from app.infrastructure.adapters.cache_store_json import JsonCacheStore


@pytest.fixture()
def cache(tmp_path):
    return JsonCacheStore(tmp_path / "cache")


@pytest.fixture()
def usage():
    return SimpleNamespace(record=AsyncMock(), get_stats=lambda: {})


def _use_case(cache, usage, *, source, timeout=None):
    seen = {}

    def factory(*, work_dir, cache, usage):
        seen["work_dir"] = work_dir
        return SimpleNamespace(
            source=source,
            fetcher=SimpleNamespace(materialize=AsyncMock()),
            normalizer=SimpleNamespace(normalize_directory=AsyncMock()),
            archiver=SimpleNamespace(build=AsyncMock()),
            cache=cache,
            sender=SimpleNamespace(send_document=AsyncMock()),
            link_publisher=SimpleNamespace(publish=AsyncMock(return_value=None)),
            usage=usage,
        )

    uc = DeliverStickerPackUseCase(
        cache,
        usage,
        factory,
        timeout=timeout,
        pipeline_options={"enable_logging_middleware": False},
    )
    return uc, seen


@pytest.mark.parametrize(
    "error,status,code",
    [
        (NotFoundError("getStickerSet: STICKERSET_INVALID"), PackStatus.NOT_FOUND, "NOT_FOUND"),
        (TransientError("getStickerSet timed out"), PackStatus.FAILED, "TRANSIENT"),
        (ConfigurationError("Bot token is not configured"), PackStatus.FAILED, "CONFIGURATION_ERROR"),
        (RuntimeError("unexpected"), PackStatus.FAILED, "INTERNAL_ERROR"),
    ],
)
@pytest.mark.asyncio
async def test_component_errors_become_one_result(cache, usage, error, status, code):
    source = SimpleNamespace(resolve=AsyncMock(side_effect=error))
    uc, seen = _use_case(cache, usage, source=source)

    result = await uc.execute("cats", 42)

    assert result.status == status
    assert result.error_code == code
    assert result.ok is False
    assert "cats" in result.message
    assert not os.path.exists(seen["work_dir"])
    usage.record.assert_not_awaited()


@pytest.mark.asyncio
async def test_oversize_message_names_sizes(cache, usage):
    error = OversizeError("too big", size=60 * 1024 * 1024, limit=50 * 1024 * 1024)
    source = SimpleNamespace(resolve=AsyncMock(side_effect=error))
    uc, _ = _use_case(cache, usage, source=source)

    result = await uc.execute("cats", 42)

    assert result.status == PackStatus.OVERSIZE
    assert "60.0 MB" in result.message
    assert "50 MB" in result.message


@pytest.mark.asyncio
async def test_blank_name_is_rejected_without_work(cache, usage, work_base):
    source = SimpleNamespace(resolve=AsyncMock())
    uc, seen = _use_case(cache, usage, source=source)

    result = await uc.execute("   ", 42)

    assert result.status == PackStatus.FAILED
    assert result.error_code == "VALIDATION_ERROR"
    assert seen == {}
    source.resolve.assert_not_awaited()


@pytest.mark.asyncio
async def test_timeout_reports_failure_and_cleans_up(cache, usage):
    async def slow_resolve(name):
        await asyncio.sleep(10)

    uc, seen = _use_case(
        cache, usage, source=SimpleNamespace(resolve=slow_resolve), timeout=0.05
    )

    result = await uc.execute("cats", 42)

    assert result.status == PackStatus.FAILED
    assert result.error_code == "TIMEOUT"
    assert not os.path.exists(seen["work_dir"])


@pytest.mark.asyncio
async def test_cancellation_still_cleans_up(cache, usage):
    started = asyncio.Event()

    async def blocking_resolve(name):
        started.set()
        await asyncio.Event().wait()

    uc, seen = _use_case(cache, usage, source=SimpleNamespace(resolve=blocking_resolve))

    task = asyncio.create_task(uc.execute("cats", 42))
    await started.wait()
    assert os.path.isdir(seen["work_dir"])
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert not os.path.exists(seen["work_dir"])
