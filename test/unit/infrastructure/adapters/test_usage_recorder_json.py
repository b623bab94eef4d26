from __future__ import annotations

import json

import pytest

from app.infrastructure.adapters.usage_recorder_json import JsonUsageRecorder

pytestmark = pytest.mark.adapters


@pytest.mark.asyncio
async def test_record_persists_and_counts(tmp_path):
    stats_file = tmp_path / "statistics.json"
    recorder = JsonUsageRecorder(stats_file)

    await recorder.record("cats", 12)
    await recorder.record("dogs", 3)

    data = json.loads(stats_file.read_text(encoding="utf-8"))
    assert data["totalDownloads"] == 2
    assert [h["name"] for h in data["downloadHistory"]] == ["cats", "dogs"]
    assert data["downloadHistory"][0]["stickerCount"] == 12
    assert data["lastUpdated"]


@pytest.mark.asyncio
async def test_history_is_capped(tmp_path):
    recorder = JsonUsageRecorder(tmp_path / "statistics.json", history_limit=5)

    for i in range(8):
        await recorder.record(f"set_{i}", i)

    history = recorder.stats["downloadHistory"]
    assert recorder.stats["totalDownloads"] == 8
    assert [h["name"] for h in history] == [f"set_{i}" for i in range(3, 8)]


@pytest.mark.asyncio
async def test_reload_from_disk(tmp_path):
    stats_file = tmp_path / "statistics.json"
    await JsonUsageRecorder(stats_file).record("cats", 1)

    stats = JsonUsageRecorder(stats_file).get_stats()

    assert stats["totalDownloads"] == 1
    assert stats["recentDownloads"][0]["name"] == "cats"


def test_corrupt_file_starts_from_zero(tmp_path):
    stats_file = tmp_path / "statistics.json"
    stats_file.write_text("[1, 2", encoding="utf-8")

    assert JsonUsageRecorder(stats_file).get_stats()["totalDownloads"] == 0


@pytest.mark.asyncio
async def test_write_failure_is_swallowed(tmp_path, caplog):
    # parent is a file, so the stats directory cannot be created
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    recorder = JsonUsageRecorder(blocker / "statistics.json")

    await recorder.record("cats", 1)

    assert any("Failed to record usage" in r.getMessage() for r in caplog.records)
