from .retry import RetryPolicy, RetryState
from .batch_downloader import BatchDownloader
from .delivery import DeliveryService

__all__ = ["RetryPolicy", "RetryState", "BatchDownloader", "DeliveryService"]
