"""Home-market geography helpers.

Upstream records disagree on how they carry coordinates: the search index
returns a GeoJSON-style ``location.point.coordinates`` pair in ``[lon, lat]``
order while other callers send flat ``location.latitude`` /
``location.longitude`` fields. ``resolve_location_shape`` names both shapes
explicitly and tries them in that order.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, NamedTuple

from equipsearch.config import settings

EARTH_RADIUS_MILES = 3959
KM_PER_MILE = 1.60934


class Coordinates(NamedTuple):
    lat: float
    lon: float


@dataclass(frozen=True)
class HomeMarket:
    latitude: float
    longitude: float
    city: str
    state: str
    service_radius_miles: float


def home_market() -> HomeMarket:
    return HomeMarket(
        latitude=settings.HOME_MARKET_LATITUDE,
        longitude=settings.HOME_MARKET_LONGITUDE,
        city=settings.HOME_MARKET_CITY,
        state=settings.HOME_MARKET_STATE,
        service_radius_miles=settings.SERVICE_RADIUS_MILES,
    )


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def is_within_radius(
    lat: float, lon: float, radius_miles: float | None = None, home: HomeMarket | None = None,
) -> bool:
    home = home or home_market()
    radius = home.service_radius_miles if radius_miles is None else radius_miles
    return distance_miles(home.latitude, home.longitude, lat, lon) <= radius


# ---------- Location shapes ----------


@dataclass(frozen=True)
class PointShape:
    """``location.point.coordinates`` as ``[lon, lat]``."""

    coordinates: tuple[float, float]

    def to_coordinates(self) -> Coordinates:
        lon, lat = self.coordinates
        return Coordinates(lat=lat, lon=lon)


@dataclass(frozen=True)
class FlatShape:
    """``location.latitude`` / ``location.longitude``."""

    latitude: float
    longitude: float

    def to_coordinates(self) -> Coordinates:
        return Coordinates(lat=self.latitude, lon=self.longitude)


LocationShape = PointShape | FlatShape


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def resolve_location_shape(record: Any) -> LocationShape | None:
    location = _field(record, "location")
    if location is None:
        return None

    coords = _field(_field(location, "point"), "coordinates")
    if coords is not None and len(coords) >= 2:
        return PointShape(coordinates=(float(coords[0]), float(coords[1])))

    lat = _field(location, "latitude")
    lon = _field(location, "longitude")
    if lat is not None and lon is not None:
        return FlatShape(latitude=float(lat), longitude=float(lon))

    return None


def extract_coordinates(record: Any) -> Coordinates | None:
    shape = resolve_location_shape(record)
    return shape.to_coordinates() if shape else None


def is_record_within_radius(
    record: Any, radius_miles: float | None = None, home: HomeMarket | None = None,
) -> bool:
    """Records without usable coordinates are never considered local."""
    coords = extract_coordinates(record)
    if coords is None:
        return False
    return is_within_radius(coords.lat, coords.lon, radius_miles, home)
