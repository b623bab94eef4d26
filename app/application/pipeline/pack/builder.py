from __future__ import annotations

from typing import Optional

from app.application.interfaces import IPackPipelineAdapters
from app.application.pipeline.base import (
    Pipeline,
    make_deadline_middleware,
    make_logging_middleware,
)
from app.application.pipeline.factory import PipelineFactory
from app.application.pipeline.pack.steps.cache_lookup import CacheLookupStep
from app.application.pipeline.pack.steps.fetch_metadata import FetchMetadataStep
from app.application.pipeline.pack.steps.download_stickers import DownloadStickersStep
from app.application.pipeline.pack.steps.normalize_formats import NormalizeFormatsStep
from app.application.pipeline.pack.steps.build_archive import BuildArchiveStep
from app.application.pipeline.pack.steps.check_size import CheckSizeStep
from app.application.pipeline.pack.steps.cache_put import CachePutStep
from app.application.pipeline.pack.steps.deliver import DeliverStep
from app.application.services import BatchDownloader, DeliveryService


def build_pack_pipeline_via_container(
    adapters: IPackPipelineAdapters,
    *,
    downloader: Optional[BatchDownloader] = None,
    delivery: Optional[DeliveryService] = None,
    size_limit_bytes: Optional[int] = None,
    deadline: Optional[float] = None,
    enable_logging_middleware: bool = True,
    fail_fast: bool = True,
) -> Pipeline:
    """Wire the pack steps.

    ``deadline`` bounds the combined run time of every step except delivery;
    delivery is bounded by its own attempts and per-push timeout.
    """
    middlewares = [make_logging_middleware()] if enable_logging_middleware else []
    if deadline:
        middlewares.append(
            make_deadline_middleware(deadline, exempt=(DeliverStep.name,))
        )
    factory = PipelineFactory(middlewares=middlewares, fail_fast=fail_fast)
    factory.add(CacheLookupStep(adapters.cache))
    factory.add(FetchMetadataStep(adapters.source))
    factory.add(DownloadStickersStep(downloader or BatchDownloader(adapters.fetcher)))
    factory.add(NormalizeFormatsStep(adapters.normalizer))
    factory.add(BuildArchiveStep(adapters.archiver))
    factory.add(CheckSizeStep(size_limit_bytes))
    factory.add(CachePutStep(adapters.cache))
    factory.add(
        DeliverStep(delivery or DeliveryService(adapters.sender), adapters.link_publisher)
    )

    return factory.build()
