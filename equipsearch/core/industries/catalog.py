from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path

from equipsearch.config import settings
from equipsearch.core.industries.schemas import IndustryConfig
from equipsearch.core.industries.synonyms import LabelMapping, map_label_to_internal

DEFAULT_CATALOG = Path(__file__).resolve().parent / "data" / "common_industries.json"

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    return _NON_SLUG.sub("-", value.lower().replace("&", "and")).strip("-")


def parse_catalog(raw: dict) -> list[IndustryConfig]:
    return [
        IndustryConfig(
            name=item["name"],
            slug=slugify(item["name"]),
            equipment_labels=item.get("common_construction_equipment") or [],
        )
        for item in raw.get("industries", [])
    ]


@lru_cache(maxsize=4)
def _load(path: str) -> tuple[IndustryConfig, ...]:
    with open(path, encoding="utf-8") as fh:
        return tuple(parse_catalog(json.load(fh)))


def load_common_industries(path: str | Path | None = None) -> list[IndustryConfig]:
    source = path or settings.INDUSTRY_CATALOG_PATH or DEFAULT_CATALOG
    return list(_load(str(source)))


def find_industry(slug: str, industries: list[IndustryConfig] | None = None) -> IndustryConfig | None:
    for industry in industries if industries is not None else load_common_industries():
        if industry.slug == slug:
            return industry
    return None


def map_labels_to_internal(labels: list[str]) -> list[LabelMapping]:
    mappings = (map_label_to_internal(label) for label in labels)
    return [m for m in mappings if m.category_slug or m.primary_type]


def build_primary_types(industry: IndustryConfig) -> list[str]:
    """Distinct ``primaryType`` filters for an industry, in catalog order."""
    seen: dict[str, None] = {}
    for mapping in map_labels_to_internal(industry.equipment_labels):
        if mapping.primary_type:
            seen.setdefault(mapping.primary_type, None)
    return list(seen)
