"""Translate ``SearchCriteria`` into the search index's OData / Lucene request body."""

from __future__ import annotations

import re
from typing import Any

from equipsearch.common.enums import ApprovalStatus, MachineStatus
from equipsearch.core.geo.location import KM_PER_MILE
from equipsearch.core.search.schemas import LocationFilter, SearchCriteria

BASE_FILTERS: tuple[str, ...] = (
    f"(status eq '{MachineStatus.AVAILABLE.value}' or status eq '{MachineStatus.ONBOARDING.value}')",
    "(requiresAdminApproval eq false)",
    f"(approvalStatus eq '{ApprovalStatus.APPROVED.value}' or approvalStatus eq null)",
)

FUZZY_MIN_LENGTH = 3
_TOKEN_CHARS = re.compile(r"[^\w-]|_")


def quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def geo_point(lat: float, lon: float) -> str:
    return f"geography'POINT({lon} {lat})'"


def geo_distance_filter(location: LocationFilter) -> str:
    radius_km = location.radius_miles * KM_PER_MILE
    return f"(geo.distance(location/point, {geo_point(location.lat, location.lon)}) le {radius_km})"


def geo_distance_order(location: LocationFilter) -> str:
    return f"geo.distance(location/point, {geo_point(location.lat, location.lon)}) asc"


def build_filter_clauses(criteria: SearchCriteria) -> list[str]:
    filters = list(BASE_FILTERS)

    if criteria.location:
        filters.append(geo_distance_filter(criteria.location))

    if criteria.primary_type:
        filters.append(f"(primaryType eq {quote(criteria.primary_type)})")
    if criteria.equipment_types:
        types = " or ".join(f"(primaryType eq {quote(t)})" for t in criteria.equipment_types)
        filters.append(f"({types})")
    if criteria.make:
        filters.append(f"(make eq {quote(criteria.make)})")
    if criteria.model:
        filters.append(f"(model eq {quote(criteria.model)})")

    if criteria.min_capacity is not None:
        filters.append(f"(capacity ge {criteria.min_capacity})")
    if criteria.max_capacity is not None:
        filters.append(f"(capacity le {criteria.max_capacity})")

    if criteria.purchase_enabled_only:
        filters.append("(buyItNowEnabled eq true)")
        filters.append("(buyItNowPrice gt 0)")

    return filters


def build_search_query(keywords: tuple[str, ...] | list[str] | None) -> str:
    """Expand each keyword into prefix and fuzzy variants, all OR'd together.

    ``contain`` becomes ``(contain* OR contain~1)``; tokens shorter than three
    characters only get the prefix form.
    """
    if not keywords:
        return ""

    expanded: list[str] = []
    for raw in keywords:
        base = str(raw).strip()
        if base.endswith("*"):
            base = base[:-1]
        if not base:
            continue
        parts = [f"{base}*"]
        if len(base) >= FUZZY_MIN_LENGTH:
            parts.append(f"{base}~1")
        expanded.append(f"({' OR '.join(parts)})" if len(parts) > 1 else parts[0])

    return " OR ".join(expanded)


def build_search_request(criteria: SearchCriteria) -> dict[str, Any]:
    search = build_search_query(criteria.keywords)

    body: dict[str, Any] = {
        "count": True,
        "filter": " and ".join(build_filter_clauses(criteria)),
        "search": search,
        "searchMode": "any" if search else "all",
        "top": criteria.max_results,
        "facets": [],
    }
    if search:
        body["queryType"] = "full"

    if criteria.order_by:
        body["orderby"] = criteria.order_by
    elif criteria.location:
        body["orderby"] = geo_distance_order(criteria.location)

    return body


def tokenize_keywords(query: str, max_tokens: int = 6) -> list[str]:
    tokens: list[str] = []
    for word in query.split():
        token = _TOKEN_CHARS.sub("", word)
        if not token:
            continue
        tokens.append(f"{token}*" if len(token) >= 2 else token)
    return tokens[:max_tokens]
