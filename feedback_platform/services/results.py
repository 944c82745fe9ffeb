"""Typed outcomes returned by the feedback services.

Validation failures and missing companies are ordinary results, not
exceptions. Routes and queue consumers branch on ``error.kind``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from feedback_platform.schemas.feedback import FeedbackRecord, PriceOverview
from feedback_platform.services.exceptions import ErrorKind, ServiceError


@dataclass(frozen=True)
class FeedbackError:
    kind: ErrorKind
    message: str
    code: Optional[str] = None
    field: Optional[str] = None
    retryable: bool = False

    @classmethod
    def from_exception(cls, exc: ServiceError, *, code: Optional[str] = None) -> "FeedbackError":
        return cls(kind=exc.kind, message=str(exc), code=code, retryable=exc.retryable)


@dataclass
class SubmissionResult:
    record: Optional[FeedbackRecord] = None
    error: Optional[FeedbackError] = None
    warnings: List[FeedbackError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class OverviewResult:
    overview: Optional[PriceOverview] = None
    error: Optional[FeedbackError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AppendResult:
    ledger_key: str
    attempts: int
    error: Optional[FeedbackError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
