"""Equipment search index client.

Thin async wrapper over the index's document-search endpoint. Callers pass
a token-acquire coroutine so every attempt, retries included, goes through
the shared rate limiter.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from equipsearch.config import settings
from equipsearch.integrations.base import BaseIntegration

RETRYABLE_STATUSES = frozenset({429, 503})
MAX_JITTER_SECONDS = 0.1


def backoff_delay(attempt: int, base_delay: float) -> float:
    return base_delay * (2**attempt) + random.uniform(0, MAX_JITTER_SECONDS)


class SearchIndexClient(BaseIntegration):
    """POSTs search bodies to the index, retrying 429/503 with backoff."""

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__("search_index")
        self._sleep = sleep
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def health_check(self) -> bool:
        if not settings.SEARCH_API_KEY:
            self.logger.info("Search index health check: not configured")
            return False
        try:
            async with self._client(10) as client:
                resp = await client.post(
                    settings.SEARCH_API_URL,
                    headers={"api-key": settings.SEARCH_API_KEY},
                    json={"count": True, "search": "", "top": 0},
                )
                return resp.status_code == 200
        except httpx.HTTPError as e:
            self.logger.error("Search index health check failed: %s", e)
            return False

    async def search(
        self,
        body: dict[str, Any],
        *,
        api_url: str,
        api_key: str,
        max_retries: int,
        base_delay: float,
        timeout: float = 15.0,
        acquire: Callable[[], Awaitable[Any]] | None = None,
    ) -> httpx.Response:
        """Return the final response; network errors propagate as ``httpx.HTTPError``."""
        headers = {"api-key": api_key, "Content-Type": "application/json"}
        attempt = 0
        async with self._client(timeout) as client:
            while True:
                if acquire is not None:
                    await acquire()
                resp = await client.post(api_url, headers=headers, json=body)
                if resp.is_success:
                    return resp
                if resp.status_code not in RETRYABLE_STATUSES or attempt >= max_retries:
                    return resp

                delay = backoff_delay(attempt, base_delay)
                self.logger.warning(
                    "Search index returned %d, retry %d/%d in %.0fms",
                    resp.status_code, attempt + 1, max_retries, delay * 1000,
                )
                await self._sleep(delay)
                attempt += 1
