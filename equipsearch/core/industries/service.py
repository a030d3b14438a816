"""Browse-by-industry aggregation over the search index.

Each industry maps to several ``primaryType`` filters. Multi-type industries
are fetched with one OR query when possible and fall back to per-type
queries; the all-industries view fans out over a fixed-size worker pool so
upstream load does not grow with the catalog.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TypeVar

from equipsearch.common.logging import get_logger
from equipsearch.core.industries.catalog import build_primary_types, load_common_industries
from equipsearch.core.industries.schemas import AggregateItem, IndustryConfig
from equipsearch.core.search.schemas import EquipmentRecord, SearchConfig, SearchCriteria, SearchResponse
from equipsearch.core.search.service import search_service

logger = get_logger("industries.service")

SearchFn = Callable[[SearchCriteria, SearchConfig], Awaitable[SearchResponse]]

T = TypeVar("T")
R = TypeVar("R")

PER_TYPE_CONCURRENCY = 3
INDUSTRY_CONCURRENCY = 6
COMBINED_RESULT_CEILING = 40

_NON_SLUG = re.compile(r"[^a-z0-9]+")


async def run_bounded(
    items: Sequence[T], worker: Callable[[int, T], Awaitable[R]], concurrency: int,
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``concurrency`` in flight.

    Workers pull the next index from a shared counter; each result lands at
    its item's index, so output order matches input order whatever the
    completion order.
    """
    results: list[R | None] = [None] * len(items)
    next_index = 0

    async def _drain() -> None:
        nonlocal next_index
        while next_index < len(items):
            current = next_index
            next_index += 1
            results[current] = await worker(current, items[current])

    await asyncio.gather(*(_drain() for _ in range(min(concurrency, len(items)))))
    return results  # type: ignore[return-value]


def bounded(search: SearchFn, semaphore: asyncio.Semaphore) -> SearchFn:
    async def _search(criteria: SearchCriteria, config: SearchConfig) -> SearchResponse:
        async with semaphore:
            return await search(criteria, config)

    return _search


def merge_records(responses: Iterable[SearchResponse]) -> list[EquipmentRecord]:
    """Dedupe by record id; the first occurrence wins."""
    merged: dict[str, EquipmentRecord] = {}
    for response in responses:
        for record in response.records:
            merged.setdefault(record.id, record)
    return list(merged.values())


def category_slug(primary_type: str) -> str:
    return _NON_SLUG.sub("-", primary_type.lower())


def count_categories(records: Iterable[EquipmentRecord]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for record in records:
        if record.primary_type:
            key = category_slug(record.primary_type)
            counts[key] = counts.get(key, 0) + 1
    return counts


async def _guarded(search: SearchFn, criteria: SearchCriteria, config: SearchConfig) -> SearchResponse:
    try:
        return await search(criteria, config)
    except Exception as e:
        logger.error("Search raised for type=%s: %s", criteria.primary_type or "multi", e)
        return SearchResponse.failed(str(e))


async def search_industry_machines(
    industry: IndustryConfig,
    config: SearchConfig,
    top: int = 12,
    search: SearchFn | None = None,
) -> SearchResponse:
    search = search or search_service.search
    started = time.monotonic()
    primary_types = build_primary_types(industry)
    if not primary_types:
        return SearchResponse()

    location = search_service.home_location()

    if len(primary_types) > 1:
        combined = SearchCriteria(
            equipment_types=tuple(primary_types),
            location=location,
            max_results=min(top * len(primary_types), COMBINED_RESULT_CEILING),
        )
        result = await _guarded(search, combined, config)
        if not result.error:
            records = merge_records([result])
            logger.info(
                "industry=%s types=%d results=%d duration=%dms one-shot",
                industry.slug, len(primary_types), len(records), (time.monotonic() - started) * 1000,
            )
            return SearchResponse(records=records, total_count=len(records))
        logger.warning(
            "Combined search failed for industry=%s (%s); falling back to per-type",
            industry.slug, result.error,
        )

    async def _per_type(_: int, primary_type: str) -> SearchResponse:
        criteria = SearchCriteria(primary_type=primary_type, location=location, max_results=top)
        return await _guarded(search, criteria, config)

    responses = await run_bounded(primary_types, _per_type, PER_TYPE_CONCURRENCY)
    if all(r.error for r in responses):
        logger.error("All %d type searches failed for industry=%s", len(responses), industry.slug)
        return SearchResponse.failed(responses[0].error)

    records = merge_records(responses)
    logger.info(
        "industry=%s types=%d results=%d duration=%dms",
        industry.slug, len(primary_types), len(records), (time.monotonic() - started) * 1000,
    )
    return SearchResponse(records=records, total_count=len(records))


def build_aggregate_item(industry: IndustryConfig, records: list[EquipmentRecord]) -> AggregateItem:
    return AggregateItem(
        industry=industry,
        machines=records,
        available_count=len(records),
        category_counts=count_categories(records),
    )


async def get_industries_with_machines(
    config: SearchConfig,
    top_per_industry: int = 12,
    industries: Sequence[IndustryConfig] | None = None,
    search: SearchFn | None = None,
    concurrency: int = INDUSTRY_CONCURRENCY,
) -> list[AggregateItem]:
    industries = list(industries) if industries is not None else load_common_industries()
    # Shared by every search in this run, including per-type fallbacks.
    limited = bounded(search or search_service.search, asyncio.Semaphore(concurrency))
    started = time.monotonic()

    async def _build(_: int, industry: IndustryConfig) -> AggregateItem:
        try:
            result = await search_industry_machines(industry, config, top_per_industry, search=limited)
        except Exception as e:
            logger.error("Aggregation failed for industry=%s: %s", industry.slug, e)
            result = SearchResponse.failed(str(e))
        return build_aggregate_item(industry, result.records)

    items = await run_bounded(industries, _build, concurrency)
    logger.info(
        "aggregated industries=%d machines=%d duration=%dms",
        len(items), sum(i.available_count for i in items), (time.monotonic() - started) * 1000,
    )
    return items
