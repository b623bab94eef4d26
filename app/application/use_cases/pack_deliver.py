from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from app.application.interfaces import ICacheStore, IPackPipelineAdapters, IUsageRecorder
from app.application.pipeline.base import PipelineContext
from app.application.pipeline.pack.builder import build_pack_pipeline_via_container
from app.application.results import PackDeliveryResult, PackStatus
from app.core.config import settings
from app.core.exceptions import (
    NotFoundError,
    OversizeError,
    PartialStateError,
    StickerPackError,
    TransientError,
)
from utils.resource_manager import managed_temp_directory

logger = logging.getLogger(__name__)

AdaptersFactory = Callable[..., IPackPipelineAdapters]


class DeliverStickerPackUseCase:
    """Deliver one sticker set to one chat, end to end.

    Runs the pack pipeline inside a fresh working directory that is removed
    on every exit path (success, failure, timeout or cancellation). The
    request timeout bounds everything up to delivery; the push and its
    pull-link fallback run on their own retry and per-push budget. Typed
    component errors are turned into a single ``PackDeliveryResult``; they
    never escape ``execute``.
    """

    def __init__(
        self,
        cache: ICacheStore,
        usage: IUsageRecorder,
        adapters_factory: AdaptersFactory,
        *,
        timeout: Optional[float] = None,
        pipeline_options: Optional[dict] = None,
    ) -> None:
        self._cache = cache
        self._usage = usage
        self._adapters_factory = adapters_factory
        self._timeout = settings.request_timeout if timeout is None else timeout
        self._pipeline_options = dict(pipeline_options or {})

    async def execute(
        self, name: str, destination: int | str, caption: Optional[str] = None
    ) -> PackDeliveryResult:
        name = (name or "").strip()
        if not name:
            return PackDeliveryResult(
                status=PackStatus.FAILED,
                message="Please provide a sticker set name.",
                name=name,
                error_code="VALIDATION_ERROR",
            )

        async with managed_temp_directory() as work_dir:
            adapters = self._adapters_factory(
                work_dir=work_dir, cache=self._cache, usage=self._usage
            )
            ctx = PipelineContext(
                input={
                    "name": name,
                    "destination": destination,
                    "caption": caption,
                    "work_dir": work_dir,
                }
            )
            pipeline = build_pack_pipeline_via_container(
                adapters, deadline=self._timeout, **self._pipeline_options
            )
            result = await self._run(pipeline, ctx)

        if result.ok:
            await self._record_usage(result)
        return result

    async def _run(self, pipeline, ctx: PipelineContext) -> PackDeliveryResult:
        name = ctx.input["name"]
        try:
            await pipeline.execute(ctx)
        except asyncio.TimeoutError:
            logger.error("Preparing %s timed out after %ss", name, self._timeout)
            return self._result(
                ctx,
                PackStatus.FAILED,
                f"Timed out while preparing sticker set {name}. Please try again later.",
                "TIMEOUT",
            )
        except OversizeError as e:
            logger.warning("Sticker set %s is too large: %s", name, e.message)
            return self._result(
                ctx,
                PackStatus.OVERSIZE,
                f"Sticker set {name} is {e.size_mb:.1f} MB, which is over the "
                f"{e.limit / (1024 * 1024):.0f} MB file size limit.",
                e.error_code,
            )
        except NotFoundError as e:
            logger.warning("Sticker set %s not found: %s", name, e.message)
            return self._result(
                ctx,
                PackStatus.NOT_FOUND,
                f"Sticker set {name} was not found. Check the name and try again.",
                e.error_code,
            )
        except PartialStateError as e:
            logger.error(
                "Sticker set %s could not be assembled: %s (path=%s)", name, e.message, e.path
            )
            return self._result(
                ctx,
                PackStatus.FAILED,
                f"Could not download any sticker of {name}.",
                e.error_code,
            )
        except TransientError as e:
            logger.error("Temporary failure while processing %s: %s", name, e.message)
            return self._result(
                ctx,
                PackStatus.FAILED,
                f"A temporary error occurred while processing {name}. Please try again later.",
                e.error_code,
            )
        except StickerPackError as e:
            logger.error("Failed to process %s: %s", name, e.message)
            return self._result(
                ctx, PackStatus.FAILED, f"Failed to process {name}: {e.message}", e.error_code
            )
        except Exception as e:  # noqa: BLE001 - one request fails, not the process
            logger.exception("Unexpected error while processing %s: %s", name, e)
            return self._result(
                ctx,
                PackStatus.FAILED,
                f"An unexpected error occurred while processing {name}.",
                "INTERNAL_ERROR",
            )
        return self._summarize(ctx)

    def _summarize(self, ctx: PipelineContext) -> PackDeliveryResult:
        name = ctx.input["name"]
        result = self._result(ctx, PackStatus.FAILED, "", None)
        delivery = ctx.get("delivery")
        archive = ctx.get("archive")
        if archive is not None:
            result.archive_size = archive.size

        if delivery is not None and delivery.success:
            result.status = PackStatus.DELIVERED
            source = "from cache" if result.from_cache else "freshly built"
            result.message = f"Sticker set {result.title or name} delivered ({source})."
            if result.fail_count:
                result.message += (
                    f" {result.success_count} stickers downloaded, "
                    f"{result.fail_count} failed."
                )
            return result

        if delivery is not None and delivery.not_found:
            result.status = PackStatus.NOT_FOUND
            result.error_code = "NOT_FOUND"
            result.message = f"The archive for {name} disappeared before it could be sent."
            return result

        url = ctx.get("pull_url")
        if url:
            result.status = PackStatus.LINK
            result.url = url
            result.message = (
                f"Could not send sticker set {result.title or name} directly. "
                f"Download it here: {url}"
            )
            return result

        result.error_code = "DELIVERY_FAILED"
        error = delivery.error if delivery is not None else "unknown error"
        result.message = f"Failed to deliver sticker set {name}: {error}"
        return result

    def _result(
        self,
        ctx: PipelineContext,
        status: PackStatus,
        message: str,
        error_code: Optional[str],
    ) -> PackDeliveryResult:
        download = ctx.get("download_result")
        return PackDeliveryResult(
            status=status,
            message=message,
            name=ctx.input["name"],
            title=ctx.get("title") or "",
            from_cache=bool(ctx.get("cache_hit")),
            success_count=download.success_count if download is not None else 0,
            fail_count=download.fail_count if download is not None else 0,
            error_code=error_code,
        )

    async def _record_usage(self, result: PackDeliveryResult) -> None:
        count = result.success_count
        if result.from_cache:
            entry = self._cache.get(result.name)
            count = entry.count if entry is not None else 0
        await self._usage.record(result.name, count)
