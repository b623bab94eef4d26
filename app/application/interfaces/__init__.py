from .sticker_source import IStickerSetSource
from .asset_fetcher import IAssetFetcher
from .format_normalizer import IFormatNormalizer
from .archive_builder import IArchiveBuilder
from .cache_store import ICacheStore
from .document_sender import IDocumentSender
from .link_publisher import ILinkPublisher
from .usage_recorder import IUsageRecorder
from .utils import IClock
from .pack_adapters import IPackPipelineAdapters

__all__ = [
    "IStickerSetSource",
    "IAssetFetcher",
    "IFormatNormalizer",
    "IArchiveBuilder",
    "ICacheStore",
    "IDocumentSender",
    "ILinkPublisher",
    "IUsageRecorder",
    "IClock",
    "IPackPipelineAdapters",
]
