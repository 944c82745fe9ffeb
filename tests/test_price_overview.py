from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from feedback_platform.schemas.feedback import FeedbackRecord
from feedback_platform.services.exceptions import ErrorKind
from feedback_platform.services.mock_store import get_mock_store
from feedback_platform.services.pricing import PriceOverviewCalculator, average_rating

PREMIUM_COMPANY_ID = 2
ENTERPRISE_COMPANY_ID = 7


def _calculator() -> PriceOverviewCalculator:
    store = get_mock_store()
    return PriceOverviewCalculator(store.catalog, store.feedback)


def _seed(company_id: int, ratings) -> None:
    store = get_mock_store()
    for rating in ratings:
        asyncio.run(
            store.feedback.put(
                FeedbackRecord(
                    id=str(uuid.uuid4()),
                    user_name="Grace",
                    comments="ok",
                    rating=rating,
                    company_id=company_id,
                    created_at=datetime.now(timezone.utc),
                )
            )
        )


def test_company_without_feedback_has_explicit_zero_overview() -> None:
    result = asyncio.run(_calculator().overview(PREMIUM_COMPANY_ID))

    assert result.ok
    assert result.overview.company_name == "Contoso Pharmaceuticals"
    assert result.overview.total_price == Decimal("0.00")
    assert result.overview.average_rating == Decimal("0.0")


def test_total_price_and_average_rating() -> None:
    _seed(PREMIUM_COMPANY_ID, [1, 2, 3, 3, 5])

    overview = asyncio.run(_calculator().overview(PREMIUM_COMPANY_ID)).overview

    assert overview.total_price == Decimal("10.00")
    assert str(overview.total_price) == "10.00"
    assert overview.average_rating == Decimal("2.8")


def test_only_the_requested_company_is_counted() -> None:
    _seed(PREMIUM_COMPANY_ID, [4, 4])
    _seed(ENTERPRISE_COMPANY_ID, [1, 1, 1])

    overview = asyncio.run(_calculator().overview(ENTERPRISE_COMPANY_ID)).overview

    assert overview.total_price == Decimal("15.00")
    assert overview.average_rating == Decimal("1.0")


def test_half_way_mean_rounds_to_even() -> None:
    _seed(PREMIUM_COMPANY_ID, [2, 2, 2, 3])

    overview = asyncio.run(_calculator().overview(PREMIUM_COMPANY_ID)).overview

    assert overview.average_rating == Decimal("2.2")


@pytest.mark.parametrize(
    "ratings, expected",
    [
        ([2, 2, 2, 3], "2.2"),
        ([2] * 13 + [3] * 7, "2.4"),
        ([1, 2], "1.5"),
        ([1, 1, 2], "1.3"),
        ([5, 5, 4], "4.7"),
        ([], "0.0"),
    ],
)
def test_average_rating_rounding(ratings, expected) -> None:
    assert average_rating(ratings) == Decimal(expected)


def test_unknown_company_is_not_found() -> None:
    result = asyncio.run(_calculator().overview(999))

    assert result.overview is None
    assert result.error.kind is ErrorKind.NOT_FOUND


def test_non_positive_company_id_is_rejected() -> None:
    result = asyncio.run(_calculator().overview(0))

    assert result.error.kind is ErrorKind.VALIDATION
