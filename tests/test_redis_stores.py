from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from feedback_platform.clients.redis_stores import (
    RedisFeedbackStore,
    RedisFollowUpQueue,
    RedisLedgerStore,
)
from feedback_platform.schemas.feedback import FeedbackRecord, FollowUpEvent
from feedback_platform.services.exceptions import DownstreamServiceError, FollowUpPublishError
from feedback_platform.services.follow_up import FollowUpConsumer, FollowUpWorker
from feedback_platform.services.ledger import LedgerAppender
from feedback_platform.services.mock_store import get_mock_store
from feedback_platform.services.ports import QueueDelivery

RECORD = FeedbackRecord(
    id="fb-1",
    user_name="Ada",
    comments="Slow",
    rating=2,
    company_id=7,
    created_at=datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
)

EVENT = FollowUpEvent(
    feedback_id="fb-1",
    user_name="Ada",
    comments="Slow",
    rating=2,
    company_id=7,
    company_name="Fabrikam Industries",
    subscription="Premium",
)


def _redis(**methods) -> MagicMock:
    client = MagicMock()
    for name, value in methods.items():
        setattr(client, name, value)
    return client


def test_ledger_read_of_missing_object_has_no_version() -> None:
    store = RedisLedgerStore(_redis(mget=AsyncMock(return_value=[None, None])))

    snapshot = asyncio.run(store.read("feedback-7.csv"))

    assert snapshot.exists is False
    assert snapshot.content == ""


def test_ledger_read_returns_content_and_version() -> None:
    mget = AsyncMock(return_value=["UserName;Comments;Rating;Company;Subscription\n", "3"])
    store = RedisLedgerStore(_redis(mget=mget))

    snapshot = asyncio.run(store.read("feedback-7.csv"))

    mget.assert_awaited_once_with("ledger:feedback-7.csv", "ledger:feedback-7.csv:version")
    assert snapshot.version == "3"
    assert snapshot.content.startswith("UserName")


def test_conditional_write_passes_expected_version_to_script() -> None:
    script = AsyncMock(return_value=4)
    store = RedisLedgerStore(_redis(eval=script))

    assert asyncio.run(store.conditional_write("k", "content", "3")) is True
    args = script.await_args.args
    assert args[1:] == (2, "ledger:k", "ledger:k:version", "3", "content")


def test_conditional_write_on_missing_object_and_conflict() -> None:
    script = AsyncMock(return_value=0)
    store = RedisLedgerStore(_redis(eval=script))

    assert asyncio.run(store.conditional_write("k", "content", None)) is False
    assert script.await_args.args[4] == ""


def test_ledger_errors_become_downstream_errors() -> None:
    store = RedisLedgerStore(_redis(mget=AsyncMock(side_effect=RedisConnectionError("down"))))

    with pytest.raises(DownstreamServiceError):
        asyncio.run(store.read("k"))


def test_feedback_store_round_trip() -> None:
    hsetnx = AsyncMock(return_value=1)
    hvals = AsyncMock(return_value=[RECORD.model_dump_json(by_alias=True), "{corrupt"])
    hget = AsyncMock(return_value=RECORD.model_dump_json(by_alias=True))
    store = RedisFeedbackStore(_redis(hsetnx=hsetnx, hvals=hvals, hget=hget))

    assert asyncio.run(store.put(RECORD)) == RECORD
    name, key, payload = hsetnx.await_args.args
    assert (name, key) == ("feedback:7", "fb-1")
    assert json.loads(payload)["userName"] == "Ada"

    assert asyncio.run(store.query_by_company(7)) == [RECORD]
    assert asyncio.run(store.get_by_id("fb-1", 7)) == RECORD


def test_feedback_store_refuses_duplicate_ids() -> None:
    store = RedisFeedbackStore(_redis(hsetnx=AsyncMock(return_value=0)))

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(store.put(RECORD))

    assert excinfo.value.status_code == 409


def test_queue_publish_failure_is_publish_error() -> None:
    queue = RedisFollowUpQueue(_redis(rpush=AsyncMock(side_effect=RedisConnectionError("down"))), "q")

    with pytest.raises(FollowUpPublishError):
        asyncio.run(queue.publish(EVENT))


def test_queue_receive_ack_and_release() -> None:
    client = _redis(
        blmove=AsyncMock(side_effect=["payload", None]),
        lrem=AsyncMock(return_value=1),
        rpush=AsyncMock(return_value=1),
    )
    queue = RedisFollowUpQueue(client, "q", block_timeout=0.5)

    delivery = asyncio.run(queue.receive())
    assert delivery == QueueDelivery(body="payload", receipt="payload")
    client.blmove.assert_awaited_with("q", "q:processing", 0.5, src="LEFT", dest="RIGHT")
    assert asyncio.run(queue.receive()) is None

    asyncio.run(queue.release(delivery))
    client.rpush.assert_awaited_with("q", "payload")
    client.lrem.assert_awaited_with("q:processing", 1, "payload")

    asyncio.run(queue.dead_letter(delivery))
    client.rpush.assert_awaited_with("q:poison", "payload")


def test_feedback_store_get_by_id_treats_corrupt_record_as_missing() -> None:
    store = RedisFeedbackStore(_redis(hget=AsyncMock(return_value="{corrupt")))

    assert asyncio.run(store.get_by_id("fb-1", 7)) is None


def test_queue_settle_errors_become_downstream_errors() -> None:
    failure = RedisConnectionError("gone")
    client = _redis(lrem=AsyncMock(side_effect=failure), rpush=AsyncMock(side_effect=failure))
    queue = RedisFollowUpQueue(client, "q")
    delivery = QueueDelivery(body="payload", receipt="payload")

    for settle in (queue.ack, queue.release, queue.dead_letter):
        with pytest.raises(DownstreamServiceError):
            asyncio.run(settle(delivery))


def test_queue_recover_moves_processing_list_back_to_queue() -> None:
    lmove = AsyncMock(side_effect=["second", "first", None])
    queue = RedisFollowUpQueue(_redis(lmove=lmove), "q")

    assert asyncio.run(queue.recover()) == 2
    lmove.assert_awaited_with("q:processing", "q", src="RIGHT", dest="LEFT")
    assert lmove.await_count == 3


def test_worker_keeps_running_when_ack_fails() -> None:
    bodies = iter([EVENT.model_dump_json(by_alias=True)])
    client = _redis(
        blmove=AsyncMock(side_effect=lambda *args, **kwargs: next(bodies, None)),
        lrem=AsyncMock(side_effect=RedisConnectionError("gone")),
        lmove=AsyncMock(return_value=None),
    )
    ledger = get_mock_store().ledger
    worker = FollowUpWorker(
        RedisFollowUpQueue(client, "q"),
        FollowUpConsumer(LedgerAppender(ledger)),
        poll_interval=0.01,
    )

    async def scenario():
        worker.start()
        await asyncio.sleep(0.1)
        assert worker.running
        await worker.stop()

    asyncio.run(scenario())

    assert worker.running is False
    assert client.lmove.await_count == 1
    assert client.blmove.await_count > 1
    assert ledger.keys() == ["feedback-7.csv"]
