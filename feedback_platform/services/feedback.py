from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from feedback_platform.schemas.company import Company, SubscriptionTier
from feedback_platform.schemas.feedback import FeedbackRecord, FeedbackSubmission, FollowUpEvent
from feedback_platform.services.catalog import resolve_pricing, with_timeout
from feedback_platform.services.exceptions import ErrorKind, ServiceError
from feedback_platform.services.ports import FeedbackStore, FollowUpQueue, PricingCatalog
from feedback_platform.services.results import FeedbackError, SubmissionResult

logger = logging.getLogger(__name__)

FOLLOW_UP_TIERS = frozenset({"premium", "enterprise"})


def needs_follow_up(rating: int, tier_name: str | None) -> bool:
    """Low ratings from Premium or Enterprise customers get a ledger entry."""
    return rating < 3 and (tier_name or "").lower() in FOLLOW_UP_TIERS


def validate_submission(submission: FeedbackSubmission) -> Optional[FeedbackError]:
    """Return the first structural problem with a submission, or None."""
    if not submission.user_name or not submission.user_name.strip():
        return _invalid("userName is required", "userName")
    if not submission.comments or not submission.comments.strip():
        return _invalid("comments is required", "comments")
    if submission.rating < 1 or submission.rating > 5:
        return _invalid("rating must be between 1 and 5", "rating")
    if submission.company_id <= 0:
        return _invalid("companyId must be a positive number", "companyId")
    return None


def _invalid(message: str, field: str) -> FeedbackError:
    return FeedbackError(kind=ErrorKind.VALIDATION, message=message, code="invalid_request", field=field)


def build_follow_up_event(
    record: FeedbackRecord, company: Company, tier: SubscriptionTier
) -> FollowUpEvent:
    return FollowUpEvent(
        feedback_id=record.id,
        user_name=record.user_name,
        comments=record.comments,
        rating=record.rating,
        company_id=record.company_id,
        company_name=company.name,
        subscription=tier.name,
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_feedback_id() -> str:
    return str(uuid.uuid4())


class FeedbackIngestionService:
    """Validates, stores and routes incoming feedback.

    The record is always written before any follow-up event is published,
    and a failed publish never removes the stored record.
    """

    def __init__(
        self,
        catalog: PricingCatalog,
        store: FeedbackStore,
        queue: FollowUpQueue,
        *,
        timeout: float = 15.0,
        fail_on_publish_error: bool = False,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_feedback_id,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._queue = queue
        self._timeout = timeout
        self._fail_on_publish_error = fail_on_publish_error
        self._clock = clock
        self._id_factory = id_factory

    async def submit(self, submission: FeedbackSubmission) -> SubmissionResult:
        invalid = validate_submission(submission)
        if invalid is not None:
            logger.warning("Validation failed: %s", invalid.message)
            return SubmissionResult(error=invalid)

        try:
            resolved = await resolve_pricing(self._catalog, submission.company_id, timeout=self._timeout)
        except ServiceError as exc:
            return SubmissionResult(error=FeedbackError.from_exception(exc))
        if isinstance(resolved, FeedbackError):
            logger.warning("Rejecting feedback for company %s: %s", submission.company_id, resolved.message)
            return SubmissionResult(error=resolved)
        company, tier = resolved

        record = FeedbackRecord(
            id=self._id_factory(),
            user_name=submission.user_name,
            comments=submission.comments,
            rating=submission.rating,
            company_id=submission.company_id,
            created_at=self._clock(),
        )
        try:
            saved = await with_timeout(self._store.put(record), self._timeout, "feedback store")
        except ServiceError as exc:
            logger.error("Unable to store feedback for company %s: %s", record.company_id, exc)
            return SubmissionResult(error=FeedbackError.from_exception(exc))

        logger.info(
            "Feedback stored. ID: %s, Company: %s, Rating: %s", saved.id, saved.company_id, saved.rating
        )
        if not needs_follow_up(saved.rating, tier.name):
            return SubmissionResult(record=saved)

        event = build_follow_up_event(saved, company, tier)
        try:
            await with_timeout(self._queue.publish(event), self._timeout, "follow-up queue")
        except ServiceError as exc:
            logger.exception("Follow-up publish failed for feedback %s", saved.id)
            failure = FeedbackError(
                kind=ErrorKind.FOLLOW_UP_PUBLISH,
                message=f"Feedback {saved.id} was stored but its follow-up could not be queued",
                code="follow_up_not_queued",
                retryable=True,
            )
            if self._fail_on_publish_error:
                return SubmissionResult(record=saved, error=failure)
            return SubmissionResult(record=saved, warnings=[failure])

        logger.info("Queued follow-up for feedback %s (%s, %s)", saved.id, company.name, tier.name)
        return SubmissionResult(record=saved)

    async def list_companies(self) -> List[Company]:
        return await with_timeout(self._catalog.list_companies(), self._timeout, "company directory")

    async def get_feedback(self, feedback_id: str, company_id: int) -> Optional[FeedbackRecord]:
        return await with_timeout(
            self._store.get_by_id(feedback_id, company_id), self._timeout, "feedback store"
        )
