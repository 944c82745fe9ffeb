from __future__ import annotations

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from feedback_platform.schemas.feedback import FollowUpEvent
from feedback_platform.services.exceptions import (
    DownstreamServiceError,
    ErrorKind,
    LedgerContentionError,
    ServiceError,
)
from feedback_platform.services.ledger import LedgerAppender
from feedback_platform.services.ports import FollowUpSource
from feedback_platform.services.results import AppendResult

logger = logging.getLogger(__name__)


class FollowUpConsumer:
    """Queue entry point: one delivered message becomes one ledger row."""

    def __init__(self, appender: LedgerAppender) -> None:
        self._appender = appender

    async def handle_message(self, raw: str) -> AppendResult:
        try:
            event = FollowUpEvent.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Failed to deserialize queue message: %s", raw)
            raise ValueError("Failed to deserialize queue message") from exc

        logger.info(
            "Processing follow-up for feedback. ID: %s, Company: %s, Rating: %s",
            event.feedback_id,
            event.company_name,
            event.rating,
        )
        result = await self._appender.append(event)
        if result.error is not None:
            if result.error.kind is ErrorKind.LEDGER_CONTENTION:
                raise LedgerContentionError(result.error.message, result.attempts)
            raise DownstreamServiceError(result.error.message)

        logger.info("Follow-up processed successfully. Ledger updated for company ID: %s", event.company_id)
        return result


class FollowUpWorker:
    """Drains a follow-up source in the background.

    Unreadable messages are dead-lettered; messages whose append failed
    are released back to the queue for redelivery. Deliveries left unsettled
    by an earlier run are requeued when the loop starts.
    """

    def __init__(
        self,
        source: FollowUpSource,
        consumer: FollowUpConsumer,
        *,
        poll_interval: float = 1.0,
    ) -> None:
        self._source = source
        self._consumer = consumer
        self._poll_interval = poll_interval
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> bool:
        delivery = await self._source.receive()
        if delivery is None:
            return False
        try:
            await self._consumer.handle_message(delivery.body)
        except ValueError:
            await self._source.dead_letter(delivery)
        except ServiceError as exc:
            logger.warning("Follow-up will be redelivered: %s", exc)
            await self._source.release(delivery)
            await asyncio.sleep(self._poll_interval)
        else:
            await self._source.ack(delivery)
        return True

    async def drain(self, max_messages: int = 100) -> int:
        processed = 0
        while processed < max_messages and await self.run_once():
            processed += 1
        return processed

    async def run(self) -> None:
        logger.info("Follow-up worker started")
        try:
            await self._source.recover()
        except ServiceError as exc:
            logger.error("Could not requeue in-flight follow-ups: %s", exc)
        while True:
            try:
                processed = await self.run_once()
            except ServiceError as exc:
                logger.error("Follow-up queue unavailable: %s", exc)
                processed = False
            except Exception:
                logger.exception("Unexpected error in follow-up worker")
                processed = False
            if not processed:
                await asyncio.sleep(self._poll_interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Follow-up worker exited with an error")
        self._task = None
        logger.info("Follow-up worker stopped")
