from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Tuple, TypeVar, Union

from feedback_platform.schemas.company import Company, SubscriptionTier
from feedback_platform.services.exceptions import DownstreamServiceError, ErrorKind
from feedback_platform.services.ports import PricingCatalog
from feedback_platform.services.results import FeedbackError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(call: Awaitable[T], timeout: float, dependency: str) -> T:
    """Await an external call, turning a timeout into a retryable downstream error."""
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("Call to %s timed out after %.1fs", dependency, timeout)
        raise DownstreamServiceError(f"{dependency} timed out", cause=exc) from exc


async def resolve_pricing(
    catalog: PricingCatalog, company_id: int, *, timeout: float
) -> Union[Tuple[Company, SubscriptionTier], FeedbackError]:
    """Look up a company and its subscription tier.

    Returns a ``not_found`` error when either is unresolvable. Raises
    ``DownstreamServiceError`` when the directory does not answer in time.
    """
    company = await with_timeout(catalog.get_company(company_id), timeout, "company directory")
    if company is None:
        return FeedbackError(
            kind=ErrorKind.NOT_FOUND,
            message=f"Company with ID {company_id} not found",
            code="company_not_found",
            field="companyId",
        )

    tier = await with_timeout(
        catalog.get_subscription(company.subscription_id), timeout, "company directory"
    )
    if tier is None:
        return FeedbackError(
            kind=ErrorKind.NOT_FOUND,
            message=f"Subscription with ID {company.subscription_id} not found",
            code="subscription_not_found",
        )
    return company, tier
