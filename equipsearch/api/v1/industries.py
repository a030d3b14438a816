from fastapi import APIRouter, Depends, Query

from equipsearch.api.deps import get_industry_search_config
from equipsearch.common.exceptions import ExternalServiceError, NotFoundError
from equipsearch.core.industries.catalog import find_industry, load_common_industries
from equipsearch.core.industries.service import get_industries_with_machines, search_industry_machines
from equipsearch.core.search.schemas import SearchConfig

router = APIRouter(prefix="/industries", tags=["Industries"])


@router.get("")
async def list_industries():
    return {
        "industries": [
            {"name": i.name, "slug": i.slug, "equipmentLabels": i.equipment_labels}
            for i in load_common_industries()
        ]
    }


@router.get("/with-machines")
async def industries_with_machines(
    top: int = Query(8, ge=1, le=40),
    config: SearchConfig = Depends(get_industry_search_config),
):
    items = await get_industries_with_machines(config, top_per_industry=top)
    return {"items": [item.to_payload() for item in items]}


@router.get("/{slug}/machines")
async def industry_machines(
    slug: str,
    top: int = Query(12, ge=1, le=40),
    config: SearchConfig = Depends(get_industry_search_config),
):
    industry = find_industry(slug)
    if industry is None:
        raise NotFoundError("Industry", slug)

    result = await search_industry_machines(industry, config, top=top)
    if result.error:
        raise ExternalServiceError("search index", result.error)
    return {"industry": industry.name, "slug": industry.slug, **result.to_payload()}
