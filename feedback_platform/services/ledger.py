"""Per-company follow-up ledger.

The ledger is a ``;``-separated text object with a fixed header, one
object per company. The backing store only offers whole-object reads and
conditional overwrites, so every append is an optimistic
read-modify-write: read content and version, build the new content, write
it only if the version is unchanged, and start over on a conflict.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from feedback_platform.schemas.feedback import FollowUpEvent, LedgerEntry, LedgerView
from feedback_platform.services.catalog import with_timeout
from feedback_platform.services.exceptions import ErrorKind, ServiceError
from feedback_platform.services.ports import LedgerStore
from feedback_platform.services.results import AppendResult, FeedbackError

logger = logging.getLogger(__name__)

LEDGER_DELIMITER = ";"
LEDGER_FIELDS = ("UserName", "Comments", "Rating", "Company", "Subscription")
LEDGER_HEADER = LEDGER_DELIMITER.join(LEDGER_FIELDS)
LEDGER_NEWLINE = "\n"
DEFAULT_KEY_TEMPLATE = "feedback-{company_id}.csv"


def ledger_key_for(company_id: int, template: str = DEFAULT_KEY_TEMPLATE) -> str:
    return template.format(company_id=company_id)


def escape_ledger_field(value: object) -> str:
    if value is None:
        return ""
    return (
        str(value)
        .replace(LEDGER_DELIMITER, ",")
        .replace("\n", " ")
        .replace("\r", " ")
    )


def format_ledger_row(event: FollowUpEvent) -> str:
    fields = (event.user_name, event.comments, event.rating, event.company_name, event.subscription)
    return LEDGER_DELIMITER.join(escape_ledger_field(value) for value in fields)


def parse_ledger(content: str) -> Tuple[Optional[str], List[List[str]]]:
    """Split ledger content into its header line and rows of fields."""
    lines = [line for line in content.split(LEDGER_NEWLINE) if line]
    if not lines:
        return None, []
    header, *rows = lines
    return header, [row.split(LEDGER_DELIMITER) for row in rows]


class LedgerAppender:
    def __init__(
        self,
        store: LedgerStore,
        *,
        max_attempts: int = 5,
        backoff_seconds: float = 0.05,
        call_timeout: float = 10.0,
        key_template: str = DEFAULT_KEY_TEMPLATE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._call_timeout = call_timeout
        self._key_template = key_template
        self._sleep = sleep

    def key_for(self, company_id: int) -> str:
        return ledger_key_for(company_id, self._key_template)

    async def append(self, event: FollowUpEvent) -> AppendResult:
        key = self.key_for(event.company_id)
        row = format_ledger_row(event) + LEDGER_NEWLINE

        for attempt in range(1, self._max_attempts + 1):
            try:
                written = await self._try_append(key, row)
            except asyncio.TimeoutError:
                logger.warning("Ledger %s call timed out (attempt %s/%s)", key, attempt, self._max_attempts)
                written = False
            except ServiceError as exc:
                logger.error("Ledger store unavailable for %s: %s", key, exc)
                return AppendResult(
                    ledger_key=key, attempts=attempt, error=FeedbackError.from_exception(exc)
                )

            if written:
                logger.info("Appended feedback %s to %s (attempt %s)", event.feedback_id, key, attempt)
                return AppendResult(ledger_key=key, attempts=attempt)

            logger.info("Ledger %s changed concurrently (attempt %s/%s)", key, attempt, self._max_attempts)
            if attempt < self._max_attempts:
                await self._sleep(self._backoff_seconds * attempt)

        logger.error(
            "Giving up on ledger %s for feedback %s after %s attempts",
            key,
            event.feedback_id,
            self._max_attempts,
        )
        return AppendResult(
            ledger_key=key,
            attempts=self._max_attempts,
            error=FeedbackError(
                kind=ErrorKind.LEDGER_CONTENTION,
                message=f"Ledger {key} is contended; gave up after {self._max_attempts} attempts",
                code="ledger_contention",
                retryable=True,
            ),
        )

    async def _try_append(self, key: str, row: str) -> bool:
        snapshot = await asyncio.wait_for(self._store.read(key), self._call_timeout)
        if not snapshot.exists or not snapshot.content:
            base = LEDGER_HEADER + LEDGER_NEWLINE
        elif snapshot.content.endswith(LEDGER_NEWLINE):
            base = snapshot.content
        else:
            base = snapshot.content + LEDGER_NEWLINE
        return await asyncio.wait_for(
            self._store.conditional_write(key, base + row, snapshot.version),
            self._call_timeout,
        )

    async def view(self, company_id: int) -> LedgerView:
        key = self.key_for(company_id)
        snapshot = await with_timeout(self._store.read(key), self._call_timeout, "ledger store")
        header, rows = parse_ledger(snapshot.content)
        entries: List[LedgerEntry] = []
        for row_number, fields in enumerate(rows, start=1):
            if len(fields) != len(LEDGER_FIELDS):
                logger.warning(
                    "Skipping malformed row %s in %s: expected %s fields, found %s",
                    row_number,
                    key,
                    len(LEDGER_FIELDS),
                    len(fields),
                )
                continue
            user_name, comments, rating, company, subscription = fields
            entries.append(
                LedgerEntry(
                    user_name=user_name,
                    comments=comments,
                    rating=rating,
                    company=company,
                    subscription=subscription,
                )
            )
        return LedgerView(company_id=company_id, ledger_key=key, header=header, rows=entries)
