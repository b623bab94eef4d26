from __future__ import annotations

import logging

from app.application.interfaces import ILinkPublisher
from app.application.pipeline.base import BaseStep, PipelineContext
from app.application.services.delivery import DeliveryService

logger = logging.getLogger(__name__)


def default_caption(context: PipelineContext) -> str:
    title = context.get("title") or context.input["name"]
    count = context.get("sticker_count") or 0
    return f"{title} ({count} stickers)"


class DeliverStep(BaseStep):
    """Push the archive; on failure hand back a pull link instead."""

    name = "deliver"
    required_keys = ["archive_path"]

    def __init__(self, delivery: DeliveryService, link_publisher: ILinkPublisher):
        self.delivery = delivery
        self.link_publisher = link_publisher

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        archive_path = context.get("archive_path")
        caption = context.input.get("caption") or default_caption(context)

        result = await self.delivery.deliver(
            context.input["destination"], archive_path, caption
        )
        context.set("delivery", result)
        if result.success or result.not_found:
            return

        logger.warning(
            "Push delivery failed after %d attempts, publishing pull link", result.attempts
        )
        try:
            url = await self.link_publisher.publish(archive_path)
        except Exception as e:  # noqa: BLE001 - the push failure is what gets reported
            logger.error("Failed to publish pull link for %s: %s", archive_path, e)
            url = None
        context.set("pull_url", url)
