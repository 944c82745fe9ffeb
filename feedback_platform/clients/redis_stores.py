"""Redis-backed feedback store, ledger store and follow-up queue.

Used when mock mode is off. The ledger's conditional write runs as a Lua
script so the version check and the overwrite are one atomic step on the
server, whichever process issues it.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from feedback_platform.schemas.feedback import FeedbackRecord, FollowUpEvent
from feedback_platform.services.exceptions import DownstreamServiceError, FollowUpPublishError
from feedback_platform.services.ports import LedgerSnapshot, QueueDelivery

logger = logging.getLogger(__name__)

# KEYS[1] content, KEYS[2] version; ARGV[1] expected version ('' = must not exist), ARGV[2] content
_COMPARE_AND_SET = """
local current = redis.call('GET', KEYS[2])
if ARGV[1] == '' then
  if current then return 0 end
elseif current ~= ARGV[1] then
  return 0
end
local generation = redis.call('INCR', KEYS[2])
redis.call('SET', KEYS[1], ARGV[2])
return generation
"""


def create_redis_client(url: str) -> Redis:
    """Create an async Redis client; the pool connects lazily on first command."""
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
    )


class RedisFeedbackStore:
    def __init__(self, client: Redis, *, prefix: str = "feedback") -> None:
        self._redis = client
        self._prefix = prefix

    def _partition(self, company_id: int) -> str:
        return f"{self._prefix}:{company_id}"

    async def put(self, record: FeedbackRecord) -> FeedbackRecord:
        try:
            created = await self._redis.hsetnx(
                self._partition(record.company_id),
                record.id,
                record.model_dump_json(by_alias=True),
            )
        except RedisError as exc:
            raise DownstreamServiceError("Unable to store feedback", cause=exc) from exc
        if not created:
            raise DownstreamServiceError(f"Feedback {record.id} already exists", status_code=409)
        return record

    async def query_by_company(self, company_id: int) -> List[FeedbackRecord]:
        try:
            values = await self._redis.hvals(self._partition(company_id))
        except RedisError as exc:
            raise DownstreamServiceError("Unable to query feedback", cause=exc) from exc
        records: List[FeedbackRecord] = []
        for raw in values:
            try:
                records.append(FeedbackRecord.model_validate_json(raw))
            except ValidationError:
                logger.error("Skipping unreadable feedback record in %s", self._partition(company_id))
        return records

    async def get_by_id(self, feedback_id: str, company_id: int) -> Optional[FeedbackRecord]:
        try:
            raw = await self._redis.hget(self._partition(company_id), feedback_id)
        except RedisError as exc:
            raise DownstreamServiceError("Unable to read feedback", cause=exc) from exc
        if raw is None:
            return None
        try:
            return FeedbackRecord.model_validate_json(raw)
        except ValidationError:
            logger.error("Unreadable feedback record %s in %s", feedback_id, self._partition(company_id))
            return None


class RedisLedgerStore:
    def __init__(self, client: Redis, *, prefix: str = "ledger") -> None:
        self._redis = client
        self._prefix = prefix

    def _keys(self, key: str) -> tuple[str, str]:
        return f"{self._prefix}:{key}", f"{self._prefix}:{key}:version"

    async def read(self, key: str) -> LedgerSnapshot:
        content_key, version_key = self._keys(key)
        try:
            content, version = await self._redis.mget(content_key, version_key)
        except RedisError as exc:
            raise DownstreamServiceError("Unable to read ledger", cause=exc) from exc
        if version is None:
            return LedgerSnapshot(content="", version=None)
        return LedgerSnapshot(content=content or "", version=str(version))

    async def conditional_write(self, key: str, content: str, expected_version: Optional[str]) -> bool:
        content_key, version_key = self._keys(key)
        try:
            generation = await self._redis.eval(
                _COMPARE_AND_SET,
                2,
                content_key,
                version_key,
                expected_version or "",
                content,
            )
        except RedisError as exc:
            raise DownstreamServiceError("Unable to write ledger", cause=exc) from exc
        return int(generation) != 0


class RedisFollowUpQueue:
    """List-backed queue; received messages sit in a processing list until acked."""

    def __init__(self, client: Redis, name: str, *, block_timeout: float = 1.0) -> None:
        self._redis = client
        self._name = name
        self._processing = f"{name}:processing"
        self._poison = f"{name}:poison"
        self._block_timeout = block_timeout

    async def publish(self, event: FollowUpEvent) -> None:
        try:
            await self._redis.rpush(self._name, event.model_dump_json(by_alias=True))
        except RedisError as exc:
            raise FollowUpPublishError("Unable to publish follow-up event", cause=exc) from exc

    async def receive(self) -> Optional[QueueDelivery]:
        try:
            body = await self._redis.blmove(
                self._name, self._processing, self._block_timeout, src="LEFT", dest="RIGHT"
            )
        except RedisError as exc:
            raise DownstreamServiceError("Unable to receive follow-up events", cause=exc) from exc
        if body is None:
            return None
        return QueueDelivery(body=body, receipt=body)

    async def ack(self, delivery: QueueDelivery) -> None:
        try:
            await self._redis.lrem(self._processing, 1, delivery.receipt)
        except RedisError as exc:
            raise DownstreamServiceError("Unable to acknowledge follow-up event", cause=exc) from exc

    async def release(self, delivery: QueueDelivery) -> None:
        # Requeue before removing so a crash in between duplicates rather than drops.
        try:
            await self._redis.rpush(self._name, delivery.body)
            await self._redis.lrem(self._processing, 1, delivery.receipt)
        except RedisError as exc:
            raise DownstreamServiceError("Unable to release follow-up event", cause=exc) from exc

    async def dead_letter(self, delivery: QueueDelivery) -> None:
        try:
            await self._redis.rpush(self._poison, delivery.body)
            await self._redis.lrem(self._processing, 1, delivery.receipt)
        except RedisError as exc:
            raise DownstreamServiceError("Unable to dead-letter follow-up event", cause=exc) from exc

    async def recover(self) -> int:
        """Move deliveries left in the processing list back to the head of the queue."""
        moved = 0
        try:
            while await self._redis.lmove(self._processing, self._name, src="RIGHT", dest="LEFT") is not None:
                moved += 1
        except RedisError as exc:
            raise DownstreamServiceError("Unable to recover in-flight follow-up events", cause=exc) from exc
        if moved:
            logger.warning("Requeued %s unacknowledged follow-up events from %s", moved, self._processing)
        return moved
