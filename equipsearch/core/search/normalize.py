"""Post-processing applied to every record returned by the search index."""

from __future__ import annotations

from typing import Any

from equipsearch.config import settings
from equipsearch.core.geo.location import HomeMarket, extract_coordinates, is_within_radius
from equipsearch.core.search.schemas import Address, EquipmentRecord, MachineLocation, RentalRate

DAILY_LABELS = {"DAY"}
WEEKLY_LABELS = {"WEEK"}
MONTHLY_LABELS = {"MONTH", "4 WKS"}
QUARTER_LABEL = "3 MOS"


def _positive(value: float | None) -> float | None:
    return value if value is not None and value > 0 else None


def rates_from_schedules(record: EquipmentRecord) -> RentalRate | None:
    """Collapse named rate schedules into a daily/weekly/monthly breakdown."""
    if not record.rate_schedules:
        return None

    daily = weekly = monthly = None
    for schedule in record.rate_schedules:
        label = (schedule.label or "").upper()
        days = schedule.num_days
        if label in DAILY_LABELS or days == 1:
            daily = schedule.cost
        elif label in WEEKLY_LABELS or days == 7:
            weekly = schedule.cost
        elif label in MONTHLY_LABELS or days in (28, 30):
            monthly = schedule.cost
        elif label == QUARTER_LABEL and days == 84 and not monthly and schedule.cost:
            monthly = round(schedule.cost / 3)

    if not monthly and isinstance(record.rental_rate, (int, float)):
        monthly = record.rental_rate

    if not (daily or weekly or monthly):
        return None
    return RentalRate(daily=daily, weekly=weekly, monthly=monthly)


def usable_rates(record: EquipmentRecord) -> RentalRate:
    """Strictly positive rental figures; a bare number counts as monthly."""
    rate = record.rental_rate
    if isinstance(rate, RentalRate):
        return RentalRate(
            daily=_positive(rate.daily),
            weekly=_positive(rate.weekly),
            monthly=_positive(rate.monthly),
        )
    if isinstance(rate, (int, float)):
        return RentalRate(monthly=_positive(float(rate)))
    return RentalRate()


def has_rental_rate(record: EquipmentRecord) -> bool:
    rates = usable_rates(record)
    if rates.daily or rates.weekly or rates.monthly:
        return True
    return any((s.cost or 0) > 0 for s in record.rate_schedules or [])


def resolve_image_url(url: str, base_url: str | None = None) -> str:
    if not url or url.startswith("http"):
        return url
    base = (base_url or settings.IMAGE_BASE_URL).rstrip("/")
    return f"{base}/{url.lstrip('/')}"


def relocate_to_home_market(record: EquipmentRecord, home: HomeMarket) -> EquipmentRecord:
    """Flag purchase-only and show the home market as the pickup city/state."""
    location = record.location or MachineLocation()
    address = location.address or Address()
    address.city = home.city
    address.state_province = home.state
    location.address = address
    location.city = home.city
    location.state = home.state
    record.location = location
    record.buy_it_now_only = True
    return record


def is_purchase_eligible(record: EquipmentRecord) -> bool:
    return bool(record.buy_it_now_enabled and record.buy_it_now_price and record.buy_it_now_price > 0)


def normalize_record(raw: dict[str, Any], home: HomeMarket) -> EquipmentRecord:
    """Parse one upstream document and apply the display rules.

    Raises ``pydantic.ValidationError`` for documents that cannot be parsed.
    """
    record = EquipmentRecord.model_validate(raw)
    # the index returns null for unset booleans
    record.buy_it_now_enabled = bool(record.buy_it_now_enabled)
    record.buy_it_now_only = bool(record.buy_it_now_only)

    derived = rates_from_schedules(record)
    if derived is not None:
        record.rental_rate = derived

    if record.images:
        record.images = [resolve_image_url(u) for u in record.images]
    if record.thumbnails:
        record.thumbnails = [resolve_image_url(u) for u in record.thumbnails]

    rates = usable_rates(record)
    if not (rates.daily or rates.weekly or rates.monthly) and is_purchase_eligible(record):
        record.buy_it_now_only = True

    coords = extract_coordinates(record)
    outside = coords is not None and not is_within_radius(coords.lat, coords.lon, home=home)
    if outside and record.buy_it_now_enabled:
        relocate_to_home_market(record, home)

    return record
