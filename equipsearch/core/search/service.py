from __future__ import annotations

import asyncio
import time

import httpx
from pydantic import ValidationError

from equipsearch.common.logging import get_logger
from equipsearch.core.geo.location import HomeMarket, home_market, is_record_within_radius
from equipsearch.core.search.cache import TTLCache
from equipsearch.core.search.normalize import has_rental_rate, normalize_record
from equipsearch.core.search.query_builder import build_search_request
from equipsearch.core.search.rate_limiter import TokenBucket
from equipsearch.core.search.schemas import (
    EquipmentRecord,
    LocationFilter,
    NearbySearchParams,
    SearchConfig,
    SearchCriteria,
    SearchResponse,
)
from equipsearch.integrations.search_index import SearchIndexClient

logger = get_logger("search.service")

NOT_CONFIGURED = "Service not configured"
BUY_NOW_LOCAL_LIMIT = 25
BUY_NOW_GLOBAL_LIMIT = 25
BUY_NOW_GLOBAL_FETCH = 1000


def _label(criteria: SearchCriteria) -> str:
    return criteria.primary_type or "multi"


class SearchService:
    """Process-wide search client.

    Owns the rate limiter and the result cache; construct once and share.
    """

    def __init__(
        self,
        index: SearchIndexClient | None = None,
        limiter: TokenBucket | None = None,
        cache: TTLCache[SearchResponse] | None = None,
        home: HomeMarket | None = None,
    ) -> None:
        # TTLCache defines __len__, so an empty one is falsy
        self.index = index if index is not None else SearchIndexClient()
        self.limiter = limiter if limiter is not None else TokenBucket()
        self.cache: TTLCache[SearchResponse] = cache if cache is not None else TTLCache()
        self._home = home
        self._stragglers: set[asyncio.Task] = set()

    @property
    def home(self) -> HomeMarket:
        return self._home if self._home is not None else home_market()

    def home_location(self, radius_miles: float | None = None) -> LocationFilter:
        home = self.home
        return LocationFilter(
            lat=home.latitude,
            lon=home.longitude,
            radius_miles=home.service_radius_miles if radius_miles is None else radius_miles,
        )

    # ------------------------------------------------------------------
    # Core search
    # ------------------------------------------------------------------

    async def search(self, criteria: SearchCriteria, config: SearchConfig) -> SearchResponse:
        if not config.api_key:
            logger.error("Search API key is not set; skipping upstream call")
            return SearchResponse.failed(NOT_CONFIGURED)

        key = criteria.cache_key()
        if config.cache_enabled:
            cached = self.cache.get(key, config.cache_ttl_seconds)
            if cached is not None:
                logger.info("cache hit age=%.0fs type=%s", self.cache.age(key) or 0, _label(criteria))
                return cached.model_copy(deep=True)

        started = time.monotonic()
        body = build_search_request(criteria)
        logger.info(
            "req type=%s top=%d radius=%s",
            _label(criteria),
            criteria.max_results,
            f"{criteria.location.radius_miles:g}mi" if criteria.location else "-",
        )

        try:
            resp = await self.index.search(
                body,
                api_url=config.api_url,
                api_key=config.api_key,
                max_retries=config.max_retries,
                base_delay=config.retry_base_delay,
                timeout=config.timeout_seconds,
                acquire=lambda: self.limiter.acquire(config.max_requests_per_second),
            )
        except httpx.HTTPError as e:
            logger.error("Search request failed: %s", e)
            return SearchResponse.failed(str(e) or e.__class__.__name__)

        if not resp.is_success:
            logger.error("Search failed with status %d: %.200s", resp.status_code, resp.text)
            return SearchResponse.failed(f"Search failed with status {resp.status_code}")

        try:
            data = resp.json()
            docs = data.get("value") or []
            if not isinstance(docs, list):
                raise ValueError("'value' is not a list")
            total = int(data.get("@odata.count") or 0)
        except (ValueError, AttributeError, TypeError) as e:
            logger.error("Malformed search response: %s", e)
            return SearchResponse.failed(f"Malformed search response: {e}")

        home = self.home
        records: list[EquipmentRecord] = []
        for doc in docs:
            try:
                records.append(normalize_record(doc, home))
            except ValidationError as e:
                doc_id = doc.get("id") if isinstance(doc, dict) else None
                logger.warning("Skipping unparseable record id=%s: %d errors", doc_id, e.error_count())

        result = SearchResponse(records=records, total_count=total)
        if config.cache_enabled:
            self.cache.set(key, result.model_copy(deep=True))

        logger.info(
            "res count=%d returned=%d duration=%dms type=%s",
            result.total_count, len(records), (time.monotonic() - started) * 1000, _label(criteria),
        )
        return result

    async def search_with_timeout(
        self, criteria: SearchCriteria, config: SearchConfig, timeout: float,
    ) -> SearchResponse:
        """Race a search against a timer; a late search is left to finish and ignored."""
        task = asyncio.ensure_future(self.search(criteria, config))
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            return task.result()

        self._stragglers.add(task)
        task.add_done_callback(self._stragglers.discard)
        logger.warning("Search timed out after %.1fs type=%s", timeout, _label(criteria))
        return SearchResponse.failed(f"Search timed out after {timeout:g}s")

    # ------------------------------------------------------------------
    # Convenience lookups
    # ------------------------------------------------------------------

    async def search_single(
        self, criteria: SearchCriteria, config: SearchConfig,
    ) -> EquipmentRecord | None:
        result = await self.search(criteria.model_copy(update={"max_results": 1}), config)
        if result.error or not result.records:
            logger.info("No machine found matching criteria: %s", criteria.cache_key())
            return None
        return result.records[0]

    async def search_by_catalog_class(
        self, cat_class: str, config: SearchConfig,
    ) -> EquipmentRecord | None:
        criteria = SearchCriteria(
            keywords=(cat_class,), max_results=5, location=self.home_location(),
        )
        result = await self.search(criteria, config)
        if not result.records:
            return None
        for record in result.records:
            if cat_class in (record.model or "") or cat_class in (record.display_name or ""):
                return record
        return result.records[0]

    async def search_near(self, params: NearbySearchParams, config: SearchConfig) -> SearchResponse:
        home = self.home
        criteria = SearchCriteria(
            location=LocationFilter(
                lat=home.latitude if params.lat is None else params.lat,
                lon=home.longitude if params.lon is None else params.lon,
                radius_miles=params.radius_miles,
            ),
            keywords=tuple(params.keywords) if params.keywords else None,
            primary_type=params.primary_type,
            make=params.make,
            model=params.model,
            max_results=params.limit,
        )
        result = await self.search(criteria, config)
        if result.error:
            return result

        records = result.records
        if params.rentals_only:
            records = [r for r in records if has_rental_rate(r)]
        return SearchResponse(records=records, total_count=result.total_count)

    async def list_buy_now_machines(self, config: SearchConfig) -> SearchResponse:
        """Local purchase-enabled machines, then out-of-market ones shown as local pickups."""
        local_criteria = SearchCriteria(
            location=self.home_location(),
            purchase_enabled_only=True,
            max_results=BUY_NOW_LOCAL_LIMIT,
            order_by="buyItNowPrice asc",
        )
        global_criteria = SearchCriteria(
            purchase_enabled_only=True,
            max_results=BUY_NOW_GLOBAL_FETCH,
            order_by="buyItNowPrice asc",
        )
        local, remote = await asyncio.gather(
            self.search(local_criteria, config), self.search(global_criteria, config),
        )
        if local.error and remote.error:
            return SearchResponse.failed(local.error)

        home = self.home
        outside = [r for r in remote.records if not is_record_within_radius(r, home=home)]
        records = local.records + outside[:BUY_NOW_GLOBAL_LIMIT]
        logger.info(
            "buy-now local=%d global=%d (of %d)", len(local.records), len(outside), len(remote.records),
        )
        return SearchResponse(records=records, total_count=len(records))

    # ------------------------------------------------------------------
    # Cache admin
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Search cache cleared")

    def cache_stats(self) -> dict[str, object]:
        return self.cache.stats()

    def reset(self) -> None:
        self.cache.clear()
        self.limiter.reset()


search_service = SearchService()
