from __future__ import annotations
import os
import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import boto3

from app.application.interfaces.link_publisher import ILinkPublisher
from app.core.config import settings

logger = logging.getLogger(__name__)


class CacheLinkPublisher(ILinkPublisher):
    """Links to archives already exposed by the /cache download route."""

    def __init__(self, cache_dir: str | Path, base_url: Optional[str] = None) -> None:
        self.cache_dir = Path(cache_dir).resolve()
        self.base_url = (base_url or settings.public_base_url).rstrip("/")

    async def publish(self, archive_path: str) -> Optional[str]:
        path = Path(archive_path).resolve()
        if not path.is_file():
            return None
        if path.parent != self.cache_dir:
            logger.warning("Archive %s is outside the cache dir; no link", path)
            return None
        return f"{self.base_url}/cache/{quote(path.name)}"


class S3LinkPublisher(ILinkPublisher):
    """Upload the archive to S3 and hand out the object URL.

    Without S3 settings the cache download link is used instead, or no link
    at all when no cache directory was given.
    """

    def __init__(self, cache_dir: Optional[str | Path] = None) -> None:
        self.fallback = CacheLinkPublisher(cache_dir) if cache_dir else None

    async def publish(self, archive_path: str) -> Optional[str]:
        if not os.path.isfile(archive_path):
            return None

        bucket = settings.aws_s3_bucket
        region = settings.aws_s3_region
        aws_key = settings.aws_access_key_id
        aws_secret = settings.aws_secret_access_key
        key = f"{settings.aws_s3_prefix}{os.path.basename(archive_path)}"

        if not bucket or not region or not aws_key or not aws_secret:
            logger.warning("S3 is not configured; falling back to the cache link")
            if self.fallback is None:
                return None
            return await self.fallback.publish(archive_path)

        def _upload_sync() -> str:
            s3_client = boto3.client(
                "s3",
                region_name=region,
                aws_access_key_id=aws_key,
                aws_secret_access_key=aws_secret,
            )
            with open(archive_path, "rb") as f:
                s3_client.upload_fileobj(
                    f, bucket, key, ExtraArgs={"ContentType": "application/zip"}
                )
            return f"https://{bucket}.s3.{region}.amazonaws.com/{quote(key)}"

        url = await asyncio.to_thread(_upload_sync)
        logger.info("Archive uploaded for pull delivery: %s", url)
        return url


def get_link_publisher(cache_dir: str | Path) -> ILinkPublisher:
    if settings.pull_link_backend == "s3":
        return S3LinkPublisher(cache_dir)
    return CacheLinkPublisher(cache_dir)
