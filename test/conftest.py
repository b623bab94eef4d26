"""
Shared fixtures for the sticker pack pipeline tests.

Every test runs against its own data directory (cache, statistics, job store,
working directories) under ``tmp_path``; nothing touches ./data.
"""

import logging
import os
import zipfile
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pytest

from app.core.config import settings
from app.core.exceptions import NotFoundError, TransientError

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging():
    """Send test logs to console and to test/test_output/logs/test_run.log."""
    log_dir = Path("test/test_output/logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "test_run.log"

    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler = logging.FileHandler(filename=log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # noisy libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)

    logging.getLogger("app").setLevel(logging.DEBUG)
    logging.getLogger("test").setLevel(logging.DEBUG)
    return log_file


def pytest_configure(config):  # pylint: disable=unused-argument
    log_file = setup_logging()
    log = logging.getLogger("pytest")
    log.info("=" * 80)
    log.info("Working directory: %s", os.getcwd())
    log.info("Log file: %s", log_file)
    log.info("-" * 80)


@pytest.fixture(autouse=True)
def log_test_name(request):
    """Log test name when test starts and finishes."""
    test_logger = logging.getLogger(request.node.nodeid)
    test_logger.info("🚀 Starting test: %s", request.node.name)
    start_time = datetime.now()

    def log_test_end():
        duration = (datetime.now() - start_time).total_seconds()
        test_logger.info("✅ Test finished after %.2fs", duration)

    request.addfinalizer(log_test_end)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every persisted path at tmp_path and remove real waits."""
    data_dir = tmp_path / "data"
    monkeypatch.setattr(settings, "data_dir", str(data_dir))
    monkeypatch.setattr(settings, "cache_dir", str(data_dir / "cache"))
    monkeypatch.setattr(settings, "stats_file", str(data_dir / "statistics.json"))
    monkeypatch.setattr(settings, "job_store_file", str(data_dir / "job_store.json"))
    monkeypatch.setattr(settings, "bot_token", "123456:TEST-TOKEN")
    monkeypatch.setattr(settings, "public_base_url", "http://testserver")
    monkeypatch.setattr(settings, "pull_link_backend", "cache")
    monkeypatch.setattr(settings, "delivery_retry_backoff", 0.0)
    monkeypatch.setattr(settings, "conversion_pacing_delay", 0.0)
    monkeypatch.setenv("TEMP_BASE_DIR", str(tmp_path / "work"))
    return data_dir


@pytest.fixture()
def work_base(tmp_path) -> Path:
    """Directory that holds per-request working directories."""
    return tmp_path / "work"


def make_sticker_set_payload(
    name: str,
    count: int,
    *,
    title: Optional[str] = None,
    video_indexes: Iterable[int] = (),
    animated_indexes: Iterable[int] = (),
) -> Dict[str, Any]:
    """A getStickerSet ``result`` as the Bot API returns it (1-based indexes)."""
    videos = set(video_indexes)
    animated = set(animated_indexes)
    return {
        "name": name,
        "title": title or name.replace("_", " ").title(),
        "sticker_type": "regular",
        "stickers": [
            {
                "file_id": f"{name}_file_{i}",
                "file_unique_id": f"u{i}",
                "is_animated": i in animated,
                "is_video": i in videos,
                "emoji": "😀",
                "width": 512,
                "height": 512,
            }
            for i in range(1, count + 1)
        ],
    }


class FakeBotApi:
    """In-memory stand-in for TelegramBotApi.

    - ``get_sticker_set`` serves registered payloads, NotFoundError otherwise
    - ``download`` writes ``payload_size`` random bytes (incompressible)
    - ``send_document`` fails ``send_failures`` times, then records the zip
      entry names of what it was sent
    """

    def __init__(
        self,
        sticker_sets: Optional[Dict[str, Dict[str, Any]]] = None,
        *,
        payload_size: int = 64,
        failing_file_ids: Iterable[str] = (),
        send_failures: int = 0,
    ) -> None:
        self.sticker_sets = dict(sticker_sets or {})
        self.payload_size = payload_size
        self.failing_file_ids = set(failing_file_ids)
        self.send_failures = send_failures
        self.calls: Dict[str, int] = {
            "getStickerSet": 0,
            "getFile": 0,
            "download": 0,
            "sendDocument": 0,
        }
        self.sent: List[Dict[str, Any]] = []

    def register(self, payload: Dict[str, Any]) -> "FakeBotApi":
        self.sticker_sets[payload["name"]] = payload
        return self

    async def get_sticker_set(self, name: str) -> Dict[str, Any]:
        self.calls["getStickerSet"] += 1
        if name not in self.sticker_sets:
            raise NotFoundError(
                "getStickerSet: Bad Request: STICKERSET_INVALID", resource="getStickerSet"
            )
        return self.sticker_sets[name]

    async def get_file(self, file_id: str) -> Dict[str, Any]:
        self.calls["getFile"] += 1
        if file_id in self.failing_file_ids:
            raise TransientError(f"getFile {file_id} timed out", operation="getFile")
        return {"file_id": file_id, "file_path": f"stickers/{file_id}.bin"}

    async def download(self, file_path: str, destination) -> int:
        self.calls["download"] += 1
        target = Path(destination)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(os.urandom(self.payload_size))
        return self.payload_size

    async def send_document(self, chat_id, file_path: str, *, caption=None):
        self.calls["sendDocument"] += 1
        if not os.path.isfile(file_path):
            raise NotFoundError(f"File not found: {file_path}", resource=file_path)
        if self.send_failures > 0:
            self.send_failures -= 1
            raise TransientError("sendDocument: Too Many Requests", operation="sendDocument")
        with zipfile.ZipFile(file_path) as zf:
            entries = sorted(zf.namelist())
        self.sent.append(
            {"chat_id": chat_id, "file": file_path, "caption": caption, "entries": entries}
        )
        return {"message_id": len(self.sent)}


@pytest.fixture()
def fake_bot_api() -> FakeBotApi:
    return FakeBotApi()
