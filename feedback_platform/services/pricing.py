from __future__ import annotations

import logging
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterable

from feedback_platform.schemas.feedback import FeedbackRecord, PriceOverview
from feedback_platform.services.catalog import resolve_pricing, with_timeout
from feedback_platform.services.exceptions import ErrorKind, ServiceError
from feedback_platform.services.ports import FeedbackStore, PricingCatalog
from feedback_platform.services.results import FeedbackError, OverviewResult

logger = logging.getLogger(__name__)

ONE_DECIMAL = Decimal("0.1")


def average_rating(ratings: Iterable[int]) -> Decimal:
    """Mean rating to one decimal place, ties rounded to even (2.25 -> 2.2)."""
    values = list(ratings)
    if not values:
        return Decimal("0.0")
    mean = Decimal(sum(values)) / Decimal(len(values))
    return mean.quantize(ONE_DECIMAL, rounding=ROUND_HALF_EVEN)


def summarize(company_name: str, price_per_message: Decimal, records: list[FeedbackRecord]) -> PriceOverview:
    if not records:
        return PriceOverview(
            company_name=company_name,
            total_price=Decimal("0.00"),
            average_rating=Decimal("0.0"),
        )
    return PriceOverview(
        company_name=company_name,
        total_price=price_per_message * len(records),
        average_rating=average_rating(record.rating for record in records),
    )


class PriceOverviewCalculator:
    def __init__(self, catalog: PricingCatalog, store: FeedbackStore, *, timeout: float = 15.0) -> None:
        self._catalog = catalog
        self._store = store
        self._timeout = timeout

    async def overview(self, company_id: int) -> OverviewResult:
        if company_id <= 0:
            return OverviewResult(
                error=FeedbackError(
                    kind=ErrorKind.VALIDATION,
                    message="companyId must be a positive number",
                    code="invalid_request",
                    field="companyId",
                )
            )
        try:
            resolved = await resolve_pricing(self._catalog, company_id, timeout=self._timeout)
            if isinstance(resolved, FeedbackError):
                logger.warning("No price overview for company %s: %s", company_id, resolved.message)
                return OverviewResult(error=resolved)
            company, tier = resolved
            records = await with_timeout(
                self._store.query_by_company(company_id), self._timeout, "feedback store"
            )
        except ServiceError as exc:
            logger.error("Price overview for company %s failed: %s", company_id, exc)
            return OverviewResult(error=FeedbackError.from_exception(exc))

        overview = summarize(company.name, tier.price, records)
        logger.info(
            "Price overview retrieved. Company: %s, Total: %s, Avg Rating: %s",
            overview.company_name,
            overview.total_price,
            overview.average_rating,
        )
        return OverviewResult(overview=overview)
