from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from equipsearch.config import settings


class UpstreamModel(BaseModel):
    """camelCase on the wire, snake_case in Python, unknown fields kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- Equipment records ----------


class GeoPoint(UpstreamModel):
    type: str = "Point"
    coordinates: list[float] | None = None


class Address(UpstreamModel):
    city: str | None = None
    state_province: str | None = None
    postal_code: str | None = None
    address1: str | None = None


class MachineLocation(UpstreamModel):
    latitude: float | None = None
    longitude: float | None = None
    formatted_address: str | None = None
    name: str | None = None
    address: Address | None = None
    point: GeoPoint | None = None
    city: str | None = None
    state: str | None = None


class RentalRate(UpstreamModel):
    daily: float | None = None
    weekly: float | None = None
    monthly: float | None = None


class RateSchedule(UpstreamModel):
    label: str | None = None
    num_days: int | None = None
    cost: float | None = None
    discount: float | None = None
    discount_percent: float | None = None


class Attachment(UpstreamModel):
    name: str | None = None
    display_name: str | None = None
    primary_type: str | None = None
    make: str | None = None
    model: str | None = None
    rental_rate: float | RentalRate | None = None
    rate_schedules: list[RateSchedule] | None = None


class EquipmentRecord(UpstreamModel):
    id: str
    machine_id: str | None = None
    display_name: str | None = None
    make: str | None = None
    model: str | None = None
    year: int | None = None
    primary_type: str | None = None
    usage: float | None = None
    hours: float | None = None
    location: MachineLocation | None = None
    rental_rate: float | RentalRate | None = None
    rate_schedules: list[RateSchedule] | None = None
    buy_it_now_enabled: bool | None = False
    buy_it_now_price: float | None = None
    buy_it_now_only: bool | None = False
    related_attachments: list[Attachment] | None = None
    images: list[str] | None = None
    thumbnails: list[str] | None = None


# ---------- Criteria / config ----------


class LocationFilter(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    lat: float
    lon: float
    radius_miles: float


class SearchCriteria(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    primary_type: str | None = None
    make: str | None = None
    model: str | None = None
    keywords: tuple[str, ...] | None = None
    location: LocationFilter | None = None
    min_capacity: float | None = None
    max_capacity: float | None = None
    max_results: int = 50
    equipment_types: tuple[str, ...] | None = None
    purchase_enabled_only: bool = False
    order_by: str | None = None

    def cache_key(self) -> str:
        return self.model_dump_json(exclude_none=True)


class SearchConfig(BaseModel):
    api_key: str | None = None
    api_url: str = Field(default_factory=lambda: settings.SEARCH_API_URL)
    cache_enabled: bool = True
    cache_ttl_seconds: float = 300
    max_requests_per_second: int = 2
    max_retries: int = 3
    retry_base_delay: float = 0.25
    timeout_seconds: float = 15.0

    @classmethod
    def from_settings(cls, **overrides: Any) -> SearchConfig:
        values: dict[str, Any] = {
            "api_key": settings.SEARCH_API_KEY or None,
            "api_url": settings.SEARCH_API_URL,
            "cache_enabled": settings.SEARCH_CACHE_ENABLED,
            "cache_ttl_seconds": settings.SEARCH_CACHE_TTL_SECONDS,
            "max_requests_per_second": settings.SEARCH_MAX_REQUESTS_PER_SECOND,
            "max_retries": settings.SEARCH_MAX_RETRIES,
            "retry_base_delay": settings.SEARCH_RETRY_BASE_DELAY_MS / 1000,
            "timeout_seconds": settings.SEARCH_TIMEOUT_SECONDS,
        }
        values.update(overrides)
        return cls(**values)


class SearchResponse(BaseModel):
    records: list[EquipmentRecord] = Field(default_factory=list)
    total_count: int = 0
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> SearchResponse:
        return cls(records=[], total_count=0, error=error)

    def to_payload(self) -> dict[str, Any]:
        return {
            "machines": [r.to_payload() for r in self.records],
            "totalCount": self.total_count,
        }


class NearbySearchParams(BaseModel):
    lat: float | None = None
    lon: float | None = None
    radius_miles: float = 50
    keywords: list[str] | None = None
    primary_type: str | None = None
    make: str | None = None
    model: str | None = None
    limit: int = 50
    rentals_only: bool = False
