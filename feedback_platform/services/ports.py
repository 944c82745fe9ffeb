"""Interfaces of the external collaborators consulted by the services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol

from feedback_platform.schemas.company import Company, SubscriptionTier
from feedback_platform.schemas.feedback import FeedbackRecord, FollowUpEvent


class PricingCatalog(Protocol):
    # Absence and unreachability both come back as None.
    async def get_company(self, company_id: int) -> Optional[Company]: ...

    async def get_subscription(self, subscription_id: int) -> Optional[SubscriptionTier]: ...

    async def list_companies(self) -> List[Company]: ...


class FeedbackStore(Protocol):
    async def put(self, record: FeedbackRecord) -> FeedbackRecord: ...

    async def query_by_company(self, company_id: int) -> List[FeedbackRecord]: ...

    async def get_by_id(self, feedback_id: str, company_id: int) -> Optional[FeedbackRecord]: ...


class FollowUpQueue(Protocol):
    async def publish(self, event: FollowUpEvent) -> None: ...


@dataclass(frozen=True)
class QueueDelivery:
    body: str
    receipt: str


class FollowUpSource(Protocol):
    async def receive(self) -> Optional[QueueDelivery]: ...

    async def ack(self, delivery: QueueDelivery) -> None: ...

    async def release(self, delivery: QueueDelivery) -> None: ...

    async def dead_letter(self, delivery: QueueDelivery) -> None: ...

    async def recover(self) -> int:
        """Put deliveries that were received but never settled back on the queue; returns how many."""
        ...


@dataclass(frozen=True)
class LedgerSnapshot:
    """Whole-object read of a ledger; ``version`` is None when the object is missing."""

    content: str
    version: Optional[str]

    @property
    def exists(self) -> bool:
        return self.version is not None


class LedgerStore(Protocol):
    async def read(self, key: str) -> LedgerSnapshot: ...

    async def conditional_write(self, key: str, content: str, expected_version: Optional[str]) -> bool:
        """Overwrite ``key`` only if its version still equals ``expected_version``.

        ``expected_version=None`` means the write succeeds only while the
        object does not exist. Returns False on a version conflict.
        """
        ...
