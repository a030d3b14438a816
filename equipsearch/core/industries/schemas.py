from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from equipsearch.core.search.schemas import EquipmentRecord


class IndustryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    slug: str
    equipment_labels: list[str] = Field(default_factory=list)


class AggregateItem(BaseModel):
    industry: IndustryConfig
    machines: list[EquipmentRecord] = Field(default_factory=list)
    available_count: int = 0
    category_counts: dict[str, int] = Field(default_factory=dict)  # category slug -> count

    def to_payload(self) -> dict[str, Any]:
        return {
            "industry": {
                "name": self.industry.name,
                "slug": self.industry.slug,
                "equipmentLabels": self.industry.equipment_labels,
            },
            "machines": [m.to_payload() for m in self.machines],
            "availableCount": self.available_count,
            "categoryCounts": self.category_counts,
        }
