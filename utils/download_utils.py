"""
Download utility functions.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Union

import aiofiles
import aiohttp

from app.core.config import settings
from app.core.exceptions import TransientError

logger = logging.getLogger(__name__)


async def download_file(
    session: aiohttp.ClientSession,
    url: str,
    destination: Union[str, Path],
    *,
    chunk_size: Optional[int] = None,
    proxy: Optional[str] = None,
) -> int:
    """
    Stream ``url`` into ``destination`` all-or-nothing.

    Bytes are written to a uniquely named ``.part`` sibling which is renamed
    over ``destination`` only after the stream finished, so a failed transfer
    never leaves a file under the final name.

    Args:
        session: Open aiohttp session
        url: Source URL to download from
        destination: Final local path
        chunk_size: Read size for streaming (defaults to settings.download_chunk_size)
        proxy: Optional HTTP(S) proxy URL

    Returns:
        Number of bytes written

    Raises:
        TransientError: on any network or file system error
    """
    dest_path = str(destination)
    part_path = f"{dest_path}.{uuid.uuid4().hex[:8]}.part"
    chunk = int(chunk_size or settings.download_chunk_size)
    written = 0

    try:
        os.makedirs(os.path.dirname(dest_path) or ".", exist_ok=True)
        async with session.get(url, proxy=proxy) as response:
            response.raise_for_status()
            async with aiofiles.open(part_path, "wb") as f:
                async for data in response.content.iter_chunked(chunk):
                    await f.write(data)
                    written += len(data)
        os.replace(part_path, dest_path)
        logger.debug("Downloaded %s to %s (%d bytes)", _redact(url), dest_path, written)
        return written
    except aiohttp.ClientError as e:
        _discard(part_path)
        logger.error("Failed to download %s: %s", _redact(url), str(e))
        raise TransientError(
            f"Failed to download {_redact(url)}: {e}", operation="download"
        ) from e
    except asyncio.TimeoutError as e:
        _discard(part_path)
        logger.error("Timed out downloading %s", _redact(url))
        raise TransientError(
            f"Timed out downloading {_redact(url)}", operation="download"
        ) from e
    except (OSError, IOError) as e:
        _discard(part_path)
        logger.error("File operation error downloading %s: %s", _redact(url), str(e))
        raise TransientError(
            f"File operation error writing {dest_path}: {e}", operation="write"
        ) from e
    except BaseException:
        # cancelled mid-stream: still leave nothing behind
        _discard(part_path)
        raise


def _discard(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning("Failed to remove partial download %s: %s", path, str(e))


def _redact(url: str) -> str:
    """Hide the bot token embedded in Bot API file URLs."""
    token = settings.bot_token
    if token and token in url:
        return url.replace(token, "***")
    return url
