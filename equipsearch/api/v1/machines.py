from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from equipsearch.api.deps import get_search_config, get_search_service
from equipsearch.common.exceptions import BadRequestError, ExternalServiceError, NotFoundError
from equipsearch.common.logging import get_logger
from equipsearch.core.search.query_builder import tokenize_keywords
from equipsearch.core.search.schemas import (
    LocationFilter,
    NearbySearchParams,
    SearchConfig,
    SearchCriteria,
    SearchResponse,
)
from equipsearch.core.search.service import SearchService

logger = get_logger("api.v1.machines")

router = APIRouter(tags=["Machines"])


# ---------- Schemas ----------


class MachineSearchRequest(BaseModel):
    criteria: SearchCriteria | None = None
    single: bool = False


class CacheStatsResponse(BaseModel):
    size: int
    entries: list[str]


# ---------- Helpers ----------


def _payload_or_raise(result: SearchResponse) -> dict[str, Any]:
    if result.error:
        raise ExternalServiceError("search index", result.error)
    return result.to_payload()


async def _run_search(
    criteria: SearchCriteria, single: bool, config: SearchConfig, service: SearchService,
) -> dict[str, Any]:
    if single:
        machine = await service.search_single(criteria, config)
        if machine is None:
            raise NotFoundError("Machine matching criteria")
        return machine.to_payload()
    return _payload_or_raise(await service.search(criteria, config))


# ---------- Endpoints ----------


@router.get("/machines/search")
async def search_machines(
    primary_type: str | None = Query(None, alias="type"),
    make: str | None = None,
    model: str | None = None,
    keywords: str | None = Query(None, description="Comma-separated keywords"),
    cat_class: str | None = Query(None, alias="catClass"),
    lat: float | None = None,
    lon: float | None = None,
    radius: float | None = None,
    min_capacity: float | None = Query(None, alias="minCapacity"),
    max_capacity: float | None = Query(None, alias="maxCapacity"),
    limit: int = Query(10, ge=1, le=1000),
    single: bool = False,
    config: SearchConfig = Depends(get_search_config),
    service: SearchService = Depends(get_search_service),
):
    keyword_list = [k.strip() for k in keywords.split(",") if k.strip()] if keywords else None

    if cat_class and not (primary_type or make or model or keyword_list):
        machine = await service.search_by_catalog_class(cat_class, config)
        if machine is None:
            raise NotFoundError("Machine with catalog class", cat_class)
        return machine.to_payload()

    if lat is not None and lon is not None:
        location = LocationFilter(lat=lat, lon=lon, radius_miles=radius or 50)
    else:
        location = service.home_location(radius)

    criteria = SearchCriteria(
        primary_type=primary_type,
        make=make,
        model=model,
        keywords=tuple(keyword_list) if keyword_list else None,
        location=location,
        min_capacity=min_capacity,
        max_capacity=max_capacity,
        max_results=limit,
    )
    return await _run_search(criteria, single, config, service)


@router.post("/machines/search")
async def search_machines_body(
    body: MachineSearchRequest,
    config: SearchConfig = Depends(get_search_config),
    service: SearchService = Depends(get_search_service),
):
    if body.criteria is None:
        raise BadRequestError("Search criteria is required in request body")

    criteria = body.criteria
    if criteria.location is None:
        criteria = criteria.model_copy(update={"location": service.home_location()})
    return await _run_search(criteria, body.single, config, service)


@router.get("/machines/nearby")
async def nearby_machines(
    lat: float | None = None,
    lon: float | None = None,
    radius: float = 50,
    q: str = "",
    primary_type: str | None = Query(None, alias="type"),
    make: str | None = None,
    model: str | None = None,
    limit: int = Query(50, ge=1, le=1000),
    rentals_only: bool = Query(False, alias="rentalsOnly"),
    config: SearchConfig = Depends(get_search_config),
    service: SearchService = Depends(get_search_service),
):
    q = q.strip()
    params = NearbySearchParams(
        lat=lat,
        lon=lon,
        radius_miles=radius,
        keywords=tokenize_keywords(q) if q else None,
        primary_type=primary_type,
        make=make,
        model=model,
        limit=limit,
        rentals_only=rentals_only,
    )
    return _payload_or_raise(await service.search_near(params, config))


@router.get("/equipment/buynow")
async def buy_now_machines(
    config: SearchConfig = Depends(get_search_config),
    service: SearchService = Depends(get_search_service),
):
    return _payload_or_raise(await service.list_buy_now_machines(config))


@router.get("/machines/cache", response_model=CacheStatsResponse)
async def cache_stats(service: SearchService = Depends(get_search_service)):
    return service.cache_stats()


@router.delete("/machines/cache")
async def clear_cache(service: SearchService = Depends(get_search_service)):
    service.clear_cache()
    return {"cleared": True}
