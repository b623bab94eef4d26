from __future__ import annotations

import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional

from app.application.interfaces.document_sender import IDocumentSender
from app.application.results import DeliveryResult
from app.application.services.retry import RetryPolicy
from app.core.config import settings
from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class DeliveryService:
    """Push an archive to a chat, retrying with exponential backoff.

    Three attempts by default with delays of base, 2*base, ... between them.
    The archive is checked before every attempt; if it vanished the push is
    abandoned with ``not_found`` instead of retrying a doomed upload. A
    NotFoundError from the sender (unknown chat) also ends the push at once.
    Choosing a pull-link fallback is left to the caller.
    """

    def __init__(
        self,
        sender: IDocumentSender,
        *,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.sender = sender
        self.policy = policy or RetryPolicy(
            max_attempts=settings.delivery_max_attempts,
            base_delay=settings.delivery_retry_backoff,
            max_delay=settings.delivery_max_backoff,
        )
        self._sleep = sleep

    async def deliver(
        self, destination: int | str, archive_path: str, caption: Optional[str] = None
    ) -> DeliveryResult:
        state = self.policy.start()
        last_error: Optional[str] = None

        while state.begin_attempt():
            if not os.path.isfile(archive_path):
                logger.error("Archive disappeared before delivery: %s", archive_path)
                return DeliveryResult(
                    success=False,
                    attempts=state.attempt - 1,
                    error=f"Archive not found: {archive_path}",
                    not_found=True,
                )

            logger.info(
                "Sending archive to %s (attempt %d/%d)",
                destination,
                state.attempt,
                self.policy.max_attempts,
            )
            try:
                ack = await self.sender.send_document(
                    destination, archive_path, caption=caption
                )
                return DeliveryResult(success=True, attempts=state.attempt, ack=ack)
            except NotFoundError as e:
                # chat gone or archive gone: terminal either way
                logger.error("Delivery target not found: %s", e.message)
                return DeliveryResult(
                    success=False,
                    attempts=state.attempt,
                    error=e.message,
                    not_found=not os.path.isfile(archive_path),
                )
            except Exception as e:  # noqa: BLE001 - transport errors are opaque
                last_error = str(e) or e.__class__.__name__

            logger.warning(
                "Delivery attempt %d/%d failed: %s",
                state.attempt,
                self.policy.max_attempts,
                last_error,
            )
            if state.exhausted:
                break
            delay = state.next_delay()
            logger.info("Retrying delivery in %.1fs", delay)
            await self._sleep(delay)

        return DeliveryResult(
            success=False,
            attempts=state.attempt,
            error=last_error or "Delivery failed after maximum attempts",
        )
