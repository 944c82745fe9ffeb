from __future__ import annotations

import itertools
from collections import OrderedDict, defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import DefaultDict, Dict, List, Optional

from feedback_platform.schemas.company import Company, SubscriptionTier
from feedback_platform.schemas.feedback import FeedbackRecord, FollowUpEvent
from feedback_platform.services.exceptions import DownstreamServiceError
from feedback_platform.services.ports import LedgerSnapshot, QueueDelivery


class PricingCatalogRepository:
    def __init__(self) -> None:
        self._companies: Dict[int, Company] = {}
        self._subscriptions: Dict[int, SubscriptionTier] = {}
        self._seed()

    def _seed(self) -> None:
        for tier in (
            SubscriptionTier(id=1, name="Basic", price=Decimal("0.50")),
            SubscriptionTier(id=2, name="Premium", price=Decimal("2.00")),
            SubscriptionTier(id=3, name="Enterprise", price=Decimal("5.00")),
        ):
            self.add_subscription(tier)
        for company in (
            Company(id=1, name="Northwind Traders", subscription_id=1),
            Company(id=2, name="Contoso Pharmaceuticals", subscription_id=2),
            Company(id=7, name="Fabrikam Industries", subscription_id=3),
        ):
            self.add_company(company)

    def add_company(self, company: Company) -> None:
        self._companies[company.id] = company

    def add_subscription(self, tier: SubscriptionTier) -> None:
        self._subscriptions[tier.id] = tier

    async def get_company(self, company_id: int) -> Optional[Company]:
        return self._companies.get(company_id)

    async def get_subscription(self, subscription_id: int) -> Optional[SubscriptionTier]:
        return self._subscriptions.get(subscription_id)

    async def list_companies(self) -> List[Company]:
        return list(self._companies.values())


class FeedbackRepository:
    def __init__(self) -> None:
        self._by_company: DefaultDict[int, Dict[str, FeedbackRecord]] = defaultdict(OrderedDict)

    async def put(self, record: FeedbackRecord) -> FeedbackRecord:
        partition = self._by_company[record.company_id]
        if record.id in partition:
            raise DownstreamServiceError(f"Feedback {record.id} already exists", status_code=409)
        partition[record.id] = record
        return record

    async def query_by_company(self, company_id: int) -> List[FeedbackRecord]:
        return list(self._by_company.get(company_id, {}).values())

    async def get_by_id(self, feedback_id: str, company_id: int) -> Optional[FeedbackRecord]:
        return self._by_company.get(company_id, {}).get(feedback_id)

    def all(self) -> List[FeedbackRecord]:
        return [record for partition in self._by_company.values() for record in partition.values()]


class FollowUpQueueRepository:
    """Queue with receive/ack semantics; unacked deliveries can be released back."""

    def __init__(self) -> None:
        self._pending: List[str] = []
        self._in_flight: Dict[str, str] = {}
        self._receipts = itertools.count(1)
        self.published: List[str] = []
        self.poison: List[str] = []

    async def publish(self, event: FollowUpEvent) -> None:
        body = event.model_dump_json(by_alias=True)
        self.published.append(body)
        self._pending.append(body)

    def push_raw(self, body: str) -> None:
        self._pending.append(body)

    async def receive(self) -> Optional[QueueDelivery]:
        if not self._pending:
            return None
        body = self._pending.pop(0)
        receipt = f"MSG-{next(self._receipts):05d}"
        self._in_flight[receipt] = body
        return QueueDelivery(body=body, receipt=receipt)

    async def ack(self, delivery: QueueDelivery) -> None:
        self._in_flight.pop(delivery.receipt, None)

    async def release(self, delivery: QueueDelivery) -> None:
        if self._in_flight.pop(delivery.receipt, None) is not None:
            self._pending.append(delivery.body)

    async def dead_letter(self, delivery: QueueDelivery) -> None:
        if self._in_flight.pop(delivery.receipt, None) is not None:
            self.poison.append(delivery.body)

    async def recover(self) -> int:
        moved = list(self._in_flight.values())
        self._in_flight.clear()
        self._pending[:0] = moved
        return len(moved)

    @property
    def pending_count(self) -> int:
        return len(self._pending)


class LedgerRepository:
    """Versioned blob store; every successful write bumps a generation number."""

    def __init__(self) -> None:
        self._objects: Dict[str, tuple[str, int]] = {}

    async def read(self, key: str) -> LedgerSnapshot:
        entry = self._objects.get(key)
        if entry is None:
            return LedgerSnapshot(content="", version=None)
        content, generation = entry
        return LedgerSnapshot(content=content, version=str(generation))

    async def conditional_write(self, key: str, content: str, expected_version: Optional[str]) -> bool:
        entry = self._objects.get(key)
        current = str(entry[1]) if entry is not None else None
        if current != expected_version:
            return False
        generation = entry[1] + 1 if entry is not None else 1
        self._objects[key] = (content, generation)
        return True

    def keys(self) -> List[str]:
        return list(self._objects)


@dataclass
class MockDataStore:
    catalog: PricingCatalogRepository
    feedback: FeedbackRepository
    follow_ups: FollowUpQueueRepository
    ledger: LedgerRepository


_mock_store: Optional[MockDataStore] = None


def get_mock_store() -> MockDataStore:
    global _mock_store
    if _mock_store is None:
        _mock_store = MockDataStore(
            catalog=PricingCatalogRepository(),
            feedback=FeedbackRepository(),
            follow_ups=FollowUpQueueRepository(),
            ledger=LedgerRepository(),
        )
    return _mock_store


def reset_mock_store() -> None:
    global _mock_store
    _mock_store = None
