from __future__ import annotations

from types import SimpleNamespace
from typing import Optional

from app.application.interfaces import (
    ICacheStore,
    IPackPipelineAdapters,
    IUsageRecorder,
)
from app.infrastructure.adapters import (
    TelegramBotApi,
    TelegramStickerSetFetcher,
    TelegramStickerFetcher,
    FFmpegFormatNormalizer,
    ZipArchiveBuilder,
    get_link_publisher,
)


def get_pack_adapter_bundle(
    *,
    work_dir: str,
    cache: ICacheStore,
    usage: IUsageRecorder,
    api: Optional[TelegramBotApi] = None,
) -> IPackPipelineAdapters:
    """Provide the adapters container for one pack delivery request.

    Request-scoped adapters write under ``work_dir``; the cache and the usage
    recorder are process-wide and passed in by the caller.
    """
    api = api or TelegramBotApi()
    return SimpleNamespace(
        source=TelegramStickerSetFetcher(api),
        fetcher=TelegramStickerFetcher(api),
        normalizer=FFmpegFormatNormalizer(),
        archiver=ZipArchiveBuilder(output_dir=work_dir),
        cache=cache,
        sender=api,
        link_publisher=get_link_publisher(cache.cache_dir),
        usage=usage,
    )
