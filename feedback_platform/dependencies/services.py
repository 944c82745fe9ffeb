from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis

from feedback_platform.clients.directory import CompanyDirectoryClient
from feedback_platform.clients.redis_stores import (
    RedisFeedbackStore,
    RedisFollowUpQueue,
    RedisLedgerStore,
    create_redis_client,
)
from feedback_platform.config import Settings, get_settings
from feedback_platform.services import (
    FeedbackIngestionService,
    FollowUpConsumer,
    FollowUpWorker,
    LedgerAppender,
    PriceOverviewCalculator,
)
from feedback_platform.services.mock_store import get_mock_store
from feedback_platform.services.ports import (
    FeedbackStore,
    FollowUpQueue,
    FollowUpSource,
    LedgerStore,
    PricingCatalog,
)


@dataclass
class Backends:
    catalog: PricingCatalog
    feedback: FeedbackStore
    queue: FollowUpQueue
    source: FollowUpSource
    ledger: LedgerStore
    directory: Optional[CompanyDirectoryClient] = None
    redis: Optional[Redis] = None


@lru_cache(maxsize=1)
def get_live_backends() -> Backends:
    settings = get_settings()
    if not settings.directory_base_url or not settings.redis_url:
        raise RuntimeError(
            "Live mode needs FEEDBACK_DIRECTORY_BASE_URL and FEEDBACK_REDIS_URL. "
            "Set FEEDBACK_USE_MOCK_DATA=true to run against the in-memory store."
        )
    directory = CompanyDirectoryClient(
        str(settings.directory_base_url), timeout=settings.directory_timeout
    )
    client = create_redis_client(settings.redis_url)
    queue = RedisFollowUpQueue(client, settings.follow_up_queue_name)
    return Backends(
        catalog=directory,
        feedback=RedisFeedbackStore(client),
        queue=queue,
        source=queue,
        ledger=RedisLedgerStore(client),
        directory=directory,
        redis=client,
    )


def get_backends(settings: Settings = Depends(get_settings)) -> Backends:
    if settings.use_mock_data:
        store = get_mock_store()
        return Backends(
            catalog=store.catalog,
            feedback=store.feedback,
            queue=store.follow_ups,
            source=store.follow_ups,
            ledger=store.ledger,
        )
    return get_live_backends()


def get_feedback_service(
    backends: Backends = Depends(get_backends),
    settings: Settings = Depends(get_settings),
) -> FeedbackIngestionService:
    return FeedbackIngestionService(
        backends.catalog,
        backends.feedback,
        backends.queue,
        timeout=settings.dependency_timeout,
        fail_on_publish_error=settings.fail_submission_on_publish_error,
    )


def get_price_overview_calculator(
    backends: Backends = Depends(get_backends),
    settings: Settings = Depends(get_settings),
) -> PriceOverviewCalculator:
    return PriceOverviewCalculator(
        backends.catalog, backends.feedback, timeout=settings.dependency_timeout
    )


def get_ledger_appender(
    backends: Backends = Depends(get_backends),
    settings: Settings = Depends(get_settings),
) -> LedgerAppender:
    return LedgerAppender(
        backends.ledger,
        max_attempts=settings.ledger_max_attempts,
        backoff_seconds=settings.ledger_backoff_seconds,
        call_timeout=settings.ledger_call_timeout,
        key_template=settings.ledger_key_template,
    )


def build_follow_up_worker(settings: Settings) -> FollowUpWorker:
    backends = get_backends(settings)
    appender = get_ledger_appender(backends, settings)
    return FollowUpWorker(
        backends.source,
        FollowUpConsumer(appender),
        poll_interval=settings.follow_up_poll_interval,
    )
