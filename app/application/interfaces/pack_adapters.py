from __future__ import annotations

from typing import Protocol, runtime_checkable

from .sticker_source import IStickerSetSource
from .asset_fetcher import IAssetFetcher
from .format_normalizer import IFormatNormalizer
from .archive_builder import IArchiveBuilder
from .cache_store import ICacheStore
from .document_sender import IDocumentSender
from .link_publisher import ILinkPublisher
from .usage_recorder import IUsageRecorder


@runtime_checkable
class IPackPipelineAdapters(Protocol):
    source: IStickerSetSource
    fetcher: IAssetFetcher
    normalizer: IFormatNormalizer
    archiver: IArchiveBuilder
    cache: ICacheStore
    sender: IDocumentSender
    link_publisher: ILinkPublisher
    usage: IUsageRecorder
