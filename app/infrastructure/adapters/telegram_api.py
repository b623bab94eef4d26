from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote

import aiohttp

from app.core.config import settings
from app.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    TransientError,
)
from utils.download_utils import download_file

logger = logging.getLogger(__name__)


class TelegramBotApi:
    """Thin async client for the Bot API methods the pack pipeline needs.

    Errors are classified once, here:
      - network failures, timeouts, 429 and 5xx -> TransientError
      - 400/403/404 replies (unknown set, bad file id, chat gone) -> NotFoundError
      - 401 (bad token) -> ConfigurationError
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        proxy: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.token = token if token is not None else settings.bot_token
        self.base_url = (base_url or settings.telegram_api_base).rstrip("/")
        self.proxy = proxy if proxy is not None else settings.effective_proxy_url
        self.timeout = float(timeout or settings.api_request_timeout)
        self._session = session
        if self.proxy:
            logger.info("Bot API requests use proxy %s", self.proxy)

    # ----- URLs -----
    def method_url(self, method: str) -> str:
        return f"{self.base_url}/bot{self.token}/{method}"

    def file_url(self, file_path: str) -> str:
        return f"{self.base_url}/file/bot{self.token}/{quote(file_path)}"

    @asynccontextmanager
    async def _session_scope(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[aiohttp.ClientSession]:
        if not self.token:
            raise ConfigurationError("Bot token is not configured", "bot_token")
        if self._session is not None:
            yield self._session
            return
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            yield session

    # ----- Core call -----
    async def call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        data: Optional[aiohttp.FormData] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Invoke a Bot API method and return its ``result`` payload."""
        try:
            async with self._session_scope(timeout) as session:
                if data is not None:
                    request = session.post(
                        self.method_url(method), data=data, proxy=self.proxy
                    )
                else:
                    request = session.get(
                        self.method_url(method), params=params, proxy=self.proxy
                    )
                async with request as response:
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        raise TransientError(
                            f"{method}: invalid response (HTTP {response.status})",
                            operation=method,
                        ) from e
                    http_status = response.status
        except aiohttp.ClientError as e:
            raise TransientError(f"{method} failed: {e}", operation=method) from e
        except asyncio.TimeoutError as e:
            raise TransientError(f"{method} timed out", operation=method) from e

        if isinstance(payload, dict) and payload.get("ok"):
            return payload.get("result")

        error_code = http_status
        description = f"HTTP {http_status}"
        if isinstance(payload, dict):
            error_code = int(payload.get("error_code") or http_status)
            description = str(payload.get("description") or description)
        raise self._classify(method, error_code, description)

    @staticmethod
    def _classify(method: str, error_code: int, description: str) -> Exception:
        message = f"{method}: {description}"
        if error_code == 401:
            return ConfigurationError(message, "bot_token")
        if error_code in (400, 403, 404):
            return NotFoundError(message, resource=method)
        return TransientError(message, operation=method)

    # ----- Methods -----
    async def get_sticker_set(self, name: str) -> Dict[str, Any]:
        return await self.call("getStickerSet", {"name": name})

    async def get_file(self, file_id: str) -> Dict[str, Any]:
        return await self.call("getFile", {"file_id": file_id})

    async def download(self, file_path: str, destination: str | Path) -> int:
        """Stream a file (by its Bot API file_path) to ``destination``."""
        try:
            async with self._session_scope(settings.download_timeout) as session:
                return await download_file(
                    session,
                    self.file_url(file_path),
                    destination,
                    proxy=self.proxy,
                )
        except aiohttp.ClientError as e:
            raise TransientError(f"download failed: {e}", operation="download") from e

    async def send_document(
        self, chat_id: int | str, file_path: str, *, caption: Optional[str] = None
    ) -> Any:
        if not os.path.isfile(file_path):
            raise NotFoundError(f"File not found: {file_path}", resource=file_path)

        with open(file_path, "rb") as fh:
            form = aiohttp.FormData()
            form.add_field("chat_id", str(chat_id))
            if caption:
                form.add_field("caption", caption)
            form.add_field(
                "document",
                fh,
                filename=os.path.basename(file_path),
                content_type="application/zip",
            )
            size_mb = os.path.getsize(file_path) / (1024 * 1024)
            logger.info(
                "Sending %s (%.2f MB) to chat %s", file_path, size_mb, chat_id
            )
            return await self.call(
                "sendDocument", data=form, timeout=settings.delivery_timeout
            )
