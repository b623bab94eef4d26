from .telegram_api import TelegramBotApi
from .sticker_set_fetcher import TelegramStickerSetFetcher
from .sticker_fetcher import TelegramStickerFetcher
from .format_normalizer_ffmpeg import FFmpegFormatNormalizer
from .archive_builder_zip import ZipArchiveBuilder
from .cache_store_json import JsonCacheStore
from .link_publisher import CacheLinkPublisher, S3LinkPublisher, get_link_publisher
from .usage_recorder_json import JsonUsageRecorder

__all__ = [
    "TelegramBotApi",
    "TelegramStickerSetFetcher",
    "TelegramStickerFetcher",
    "FFmpegFormatNormalizer",
    "ZipArchiveBuilder",
    "JsonCacheStore",
    "CacheLinkPublisher",
    "S3LinkPublisher",
    "get_link_publisher",
    "JsonUsageRecorder",
]
