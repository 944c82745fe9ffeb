from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from feedback_platform.schemas.company import Company, SubscriptionTier

logger = logging.getLogger(__name__)


class CompanyDirectoryClient:
    """Async HTTP client for the external company and subscription directory.

    Lookups never raise for ordinary failures: a non-success status, an
    unreachable directory and an unparseable body all come back as
    ``None`` (or an empty list), so callers cannot tell "absent" from
    "unreachable".
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = str(base_url).rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def _get_json(self, path: str) -> Any | None:
        client = await self._ensure_client()
        try:
            response = await client.get(path)
        except httpx.RequestError as exc:
            logger.warning("Unable to reach company directory at %s: %s", path, exc)
            return None
        if not response.is_success:
            logger.info("Company directory returned %s for %s", response.status_code, path)
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Company directory returned a non-JSON body for %s", path)
            return None

    async def get_company(self, company_id: int) -> Optional[Company]:
        data = await self._get_json(f"/companies/{company_id}")
        if data is None:
            return None
        try:
            return Company.model_validate(data)
        except ValidationError:
            logger.warning("Malformed company payload for id %s", company_id)
            return None

    async def get_subscription(self, subscription_id: int) -> Optional[SubscriptionTier]:
        data = await self._get_json(f"/subscriptions/{subscription_id}")
        if data is None:
            return None
        try:
            return SubscriptionTier.model_validate(data)
        except ValidationError:
            logger.warning("Malformed subscription payload for id %s", subscription_id)
            return None

    async def list_companies(self) -> List[Company]:
        data = await self._get_json("/companies")
        if not isinstance(data, list):
            return []
        companies: List[Company] = []
        for item in data:
            try:
                companies.append(Company.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed company payload: %s", item)
        return companies
