from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeedbackSubmission(_CamelModel):
    """Incoming feedback payload.

    Fields are deliberately unconstrained here; the ingestion service runs
    the structural checks so that it can report them in a fixed order.
    """

    user_name: str = ""
    comments: str = ""
    rating: int = 0
    company_id: int = 0


class FeedbackRecord(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    user_name: str
    comments: str
    rating: int
    company_id: int
    created_at: datetime


class FollowUpEvent(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    feedback_id: str
    user_name: str
    comments: str
    rating: int
    company_id: int
    company_name: str
    subscription: str


class PriceOverview(_CamelModel):
    company_name: str
    total_price: Decimal
    average_rating: Decimal

    @field_serializer("total_price", "average_rating", when_used="json")
    def _as_number(self, value: Decimal) -> float:
        return float(value)


class SubmissionWarning(BaseModel):
    kind: str
    message: str


class SubmissionResponse(BaseModel):
    feedback: FeedbackRecord
    warnings: List[SubmissionWarning] = Field(default_factory=list)


class LedgerEntry(_CamelModel):
    user_name: str
    comments: str
    rating: str
    company: str
    subscription: str


class LedgerView(_CamelModel):
    company_id: int
    ledger_key: str
    header: Optional[str] = None
    rows: List[LedgerEntry] = Field(default_factory=list)
