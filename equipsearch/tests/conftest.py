import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from equipsearch.config import settings
from equipsearch.core.geo.location import HomeMarket
from equipsearch.core.search.cache import TTLCache
from equipsearch.core.search.rate_limiter import TokenBucket
from equipsearch.core.search.schemas import SearchConfig
from equipsearch.core.search.service import SearchService, search_service
from equipsearch.integrations.search_index import SearchIndexClient

SEARCH_URL = "https://search.test/indexes/machines/docs/search"

HOME = HomeMarket(
    latitude=30.2241,
    longitude=-92.0198,
    city="Lafayette",
    state="LA",
    service_radius_miles=50,
)

# Broussard, LA (~8 miles from the home market) and Houston, TX (~200 miles)
NEARBY = (30.1471, -91.9612)
FAR_AWAY = (29.7604, -95.3698)


class FakeClock:
    """Monotonic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def make_doc(machine_id: str, coords: tuple[float, float] = NEARBY, **fields) -> dict:
    lat, lon = coords
    doc = {
        "id": machine_id,
        "make": "Caterpillar",
        "model": "259D3",
        "primaryType": "Skid Steer",
        "location": {
            "city": "Broussard",
            "state": "LA",
            "address": {"city": "Broussard", "stateProvince": "LA"},
            "point": {"type": "Point", "coordinates": [lon, lat]},
        },
        "rentalRate": {"daily": 250, "weekly": 900, "monthly": 2400},
    }
    doc.update(fields)
    return doc


def index_response(*docs: dict, count: int | None = None) -> dict:
    return {"value": list(docs), "@odata.count": len(docs) if count is None else count}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def retry_delays():
    return []


@pytest.fixture
def service(clock, retry_delays):
    async def record_sleep(seconds: float) -> None:
        retry_delays.append(seconds)

    return SearchService(
        index=SearchIndexClient(sleep=record_sleep),
        limiter=TokenBucket(clock=clock, sleep=clock.sleep),
        cache=TTLCache(clock=clock),
        home=HOME,
    )


@pytest.fixture
def config():
    return SearchConfig(
        api_key="test-key",
        api_url=SEARCH_URL,
        cache_enabled=True,
        cache_ttl_seconds=300,
        max_requests_per_second=100,
        max_retries=3,
        retry_base_delay=0.25,
    )


@pytest.fixture(autouse=True)
def reset_search_service():
    search_service.reset()
    yield
    search_service.reset()


@pytest.fixture
def configured(monkeypatch):
    """Point the app settings at a fake search index."""
    monkeypatch.setattr(settings, "SEARCH_API_KEY", "test-key")
    monkeypatch.setattr(settings, "SEARCH_API_URL", SEARCH_URL)
    monkeypatch.setattr(settings, "SEARCH_MAX_REQUESTS_PER_SECOND", 1000)
    monkeypatch.setattr(settings, "SEARCH_RETRY_BASE_DELAY_MS", 0)


@pytest.fixture
async def client():
    from equipsearch.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
