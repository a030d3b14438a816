import asyncio
import json

import httpx
import pytest
import respx
from httpx import Response

from conftest import FAR_AWAY, HOME, NEARBY, SEARCH_URL, index_response, make_doc
from equipsearch.core.search.cache import TTLCache
from equipsearch.core.search.rate_limiter import TokenBucket
from equipsearch.core.search.schemas import LocationFilter, NearbySearchParams, SearchCriteria, SearchResponse
from equipsearch.core.search.service import SearchService

CRITERIA = SearchCriteria(
    primary_type="Skid Steer",
    location=LocationFilter(lat=HOME.latitude, lon=HOME.longitude, radius_miles=50),
    max_results=10,
)


def _body(call) -> dict:
    return json.loads(call.request.content)


# ---------- Happy path and cache ----------


@pytest.mark.asyncio
@respx.mock
async def test_search_returns_normalized_records(service, config):
    route = respx.post(SEARCH_URL).mock(
        return_value=Response(200, json=index_response(make_doc("m-1"), make_doc("m-2"), count=42))
    )

    result = await service.search(CRITERIA, config)

    assert result.error is None
    assert result.total_count == 42
    assert [r.id for r in result.records] == ["m-1", "m-2"]
    request = route.calls.last.request
    assert request.headers["api-key"] == "test-key"
    body = _body(route.calls.last)
    assert body["top"] == 10
    assert "(primaryType eq 'Skid Steer')" in body["filter"]
    assert body["orderby"].startswith("geo.distance(")


@pytest.mark.asyncio
@respx.mock
async def test_repeat_search_is_served_from_cache(service, config):
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(make_doc("m-1"))))

    first = await service.search(CRITERIA, config)
    second = await service.search(CRITERIA, config)

    assert route.call_count == 1
    assert first.model_dump_json() == second.model_dump_json()
    assert service.cache_stats()["size"] == 1


@pytest.mark.asyncio
@respx.mock
async def test_cached_result_is_a_copy(service, config):
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(make_doc("m-1"))))

    first = await service.search(CRITERIA, config)
    first.records[0].make = "Mutated"
    first.records.clear()

    second = await service.search(CRITERIA, config)
    assert second.records[0].make == "Caterpillar"


@pytest.mark.asyncio
@respx.mock
async def test_cache_expires_after_ttl(service, config, clock):
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(make_doc("m-1"))))

    await service.search(CRITERIA, config)
    clock.advance(299)
    await service.search(CRITERIA, config)
    assert route.call_count == 1

    clock.advance(1)
    await service.search(CRITERIA, config)
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_different_criteria_do_not_share_cache(service, config):
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response()))

    await service.search(CRITERIA, config)
    await service.search(CRITERIA.model_copy(update={"max_results": 11}), config)

    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_cache_disabled(service, config):
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response()))
    config = config.model_copy(update={"cache_enabled": False})

    await service.search(CRITERIA, config)
    await service.search(CRITERIA, config)

    assert route.call_count == 2
    assert len(service.cache) == 0


@pytest.mark.asyncio
@respx.mock
async def test_clear_cache(service, config):
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response()))

    await service.search(CRITERIA, config)
    service.clear_cache()
    await service.search(CRITERIA, config)

    assert route.call_count == 2


# ---------- Failures ----------


@pytest.mark.asyncio
@respx.mock
async def test_missing_api_key_makes_no_request(service, config):
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response()))

    result = await service.search(CRITERIA, config.model_copy(update={"api_key": None}))

    assert result.error == "Service not configured"
    assert result.records == []
    assert result.total_count == 0
    assert not route.called


@pytest.mark.asyncio
@respx.mock
async def test_retryable_status_is_retried_with_backoff(service, config, retry_delays):
    route = respx.post(SEARCH_URL).mock(return_value=Response(503))

    result = await service.search(CRITERIA, config)

    assert result.error == "Search failed with status 503"
    assert route.call_count == config.max_retries + 1
    assert len(retry_delays) == config.max_retries
    for attempt, delay in enumerate(retry_delays):
        base = config.retry_base_delay * 2**attempt
        assert base <= delay <= base + 0.1
    assert len(service.cache) == 0


@pytest.mark.asyncio
@respx.mock
async def test_rate_limited_then_success(service, config, retry_delays):
    route = respx.post(SEARCH_URL).mock(
        side_effect=[Response(429), Response(200, json=index_response(make_doc("m-1")))]
    )

    result = await service.search(CRITERIA, config)

    assert result.error is None
    assert [r.id for r in result.records] == ["m-1"]
    assert route.call_count == 2
    assert len(retry_delays) == 1


@pytest.mark.asyncio
@respx.mock
async def test_zero_retries_makes_one_call(service, config, retry_delays):
    route = respx.post(SEARCH_URL).mock(return_value=Response(429))

    result = await service.search(CRITERIA, config.model_copy(update={"max_retries": 0}))

    assert result.error == "Search failed with status 429"
    assert route.call_count == 1
    assert retry_delays == []


@pytest.mark.asyncio
@respx.mock
async def test_every_attempt_takes_a_token(service, config, clock):
    route = respx.post(SEARCH_URL).mock(return_value=Response(503))

    await service.search(CRITERIA, config.model_copy(update={"max_requests_per_second": 1}))

    assert route.call_count == 4
    # first attempt uses the initial token; each retry waits a full second
    assert sum(clock.sleeps) == pytest.approx(3.0)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 500])
@respx.mock
async def test_non_retryable_status_fails_immediately(service, config, retry_delays, status):
    route = respx.post(SEARCH_URL).mock(return_value=Response(status, text="nope"))

    result = await service.search(CRITERIA, config)

    assert result.error == f"Search failed with status {status}"
    assert route.call_count == 1
    assert retry_delays == []


@pytest.mark.asyncio
@respx.mock
async def test_network_error_is_reported(service, config):
    respx.post(SEARCH_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    result = await service.search(CRITERIA, config)

    assert result.error == "connection refused"
    assert result.records == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        Response(200, text="<html>not json</html>"),
        Response(200, json={"value": "nope"}),
        Response(200, json=[1, 2, 3]),
    ],
)
@respx.mock
async def test_malformed_body_is_reported(service, config, response):
    respx.post(SEARCH_URL).mock(return_value=response)

    result = await service.search(CRITERIA, config)

    assert result.error.startswith("Malformed search response")
    assert result.records == []
    assert len(service.cache) == 0


@pytest.mark.asyncio
@respx.mock
async def test_missing_count_defaults_to_zero(service, config):
    respx.post(SEARCH_URL).mock(return_value=Response(200, json={"value": [make_doc("m-1")]}))
    result = await service.search(CRITERIA, config)
    assert result.total_count == 0
    assert len(result.records) == 1


def _with_null(doc: dict, field: str) -> dict:
    if field == "point":
        doc["location"]["point"]["coordinates"] = None
    else:
        doc[field] = None
    return doc


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["buyItNowEnabled", "buyItNowOnly", "point"])
@respx.mock
async def test_null_fields_do_not_drop_the_batch(service, config, field):
    docs = [make_doc("m-1"), _with_null(make_doc("m-2"), field)]
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(*docs)))

    result = await service.search(CRITERIA, config)

    assert result.error is None
    assert [r.id for r in result.records] == ["m-1", "m-2"]
    nulled = result.records[1]
    assert nulled.buy_it_now_enabled is False
    assert nulled.buy_it_now_only is False
    assert nulled.to_payload()["buyItNowOnly"] is False


@pytest.mark.asyncio
@respx.mock
async def test_null_point_falls_back_to_flat_coordinates(service, config):
    doc = make_doc("far", coords=FAR_AWAY, buyItNowEnabled=True, buyItNowPrice=50000)
    doc["location"]["point"] = {"type": "Point", "coordinates": None}
    doc["location"]["latitude"], doc["location"]["longitude"] = FAR_AWAY
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(doc)))

    result = await service.search(CRITERIA, config)

    assert result.records[0].buy_it_now_only is True
    assert result.records[0].location.city == "Lafayette"


@pytest.mark.asyncio
@respx.mock
async def test_unparseable_record_is_skipped(service, config):
    docs = [make_doc("m-1"), {"make": "no id"}, "not a record", make_doc("m-3")]
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(*docs, count=4)))

    result = await service.search(CRITERIA, config)

    assert result.error is None
    assert [r.id for r in result.records] == ["m-1", "m-3"]
    assert result.total_count == 4


def test_injected_empty_cache_is_kept(clock):
    cache = TTLCache(clock=clock)
    limiter = TokenBucket(clock=clock, sleep=clock.sleep)
    service = SearchService(cache=cache, limiter=limiter, home=HOME)

    assert service.cache is cache
    assert service.limiter is limiter
    assert service.home is HOME


# ---------- Purchase-only normalization ----------


@pytest.mark.asyncio
@respx.mock
async def test_far_purchase_listing_shows_home_market(service, config):
    far = make_doc("far", coords=FAR_AWAY, buyItNowEnabled=True, buyItNowPrice=80000)
    near = make_doc("near", coords=NEARBY, buyItNowEnabled=True, buyItNowPrice=80000)
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(far, near)))

    result = await service.search(SearchCriteria(max_results=2), config)

    far_rec, near_rec = result.records
    assert far_rec.buy_it_now_only is True
    assert far_rec.location.city == "Lafayette"
    assert far_rec.location.address.state_province == "LA"
    assert near_rec.buy_it_now_only is False
    assert near_rec.location.city == "Broussard"


# ---------- Timeout ----------


@pytest.mark.asyncio
async def test_search_with_timeout_returns_failure_and_lets_search_finish(service, config, monkeypatch):
    release = asyncio.Event()
    finished = []

    async def slow_search(criteria, cfg):
        await release.wait()
        finished.append(criteria)
        return SearchResponse()

    monkeypatch.setattr(service, "search", slow_search)

    result = await service.search_with_timeout(CRITERIA, config, timeout=0.01)

    assert result.error == "Search timed out after 0.01s"
    assert result.records == []
    assert len(service._stragglers) == 1

    release.set()
    await asyncio.gather(*service._stragglers)
    assert finished == [CRITERIA]


@pytest.mark.asyncio
@respx.mock
async def test_search_with_timeout_passes_through_fast_result(service, config):
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(make_doc("m-1"))))
    result = await service.search_with_timeout(CRITERIA, config, timeout=5)
    assert [r.id for r in result.records] == ["m-1"]


# ---------- Convenience lookups ----------


@pytest.mark.asyncio
@respx.mock
async def test_search_single(service, config):
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(make_doc("m-1"))))

    machine = await service.search_single(CRITERIA, config)

    assert machine.id == "m-1"
    assert _body(route.calls.last)["top"] == 1


@pytest.mark.asyncio
@respx.mock
async def test_search_single_no_match(service, config):
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response()))
    assert await service.search_single(CRITERIA, config) is None


@pytest.mark.asyncio
@respx.mock
async def test_search_by_catalog_class_prefers_matching_model(service, config):
    docs = [make_doc("m-1", model="262D"), make_doc("m-2", model="CC-1234 Skid"), make_doc("m-3")]
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(*docs)))

    machine = await service.search_by_catalog_class("CC-1234", config)

    assert machine.id == "m-2"
    body = _body(route.calls.last)
    assert body["top"] == 5
    assert body["search"] == "(CC-1234* OR CC-1234~1)"


@pytest.mark.asyncio
@respx.mock
async def test_search_by_catalog_class_falls_back_to_first(service, config):
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(make_doc("m-1"), make_doc("m-2"))))
    machine = await service.search_by_catalog_class("ZZ-9", config)
    assert machine.id == "m-1"


@pytest.mark.asyncio
@respx.mock
async def test_search_near_rentals_only(service, config):
    rentable = make_doc("rent")
    purchase_only = make_doc("buy", rentalRate=None, buyItNowEnabled=True, buyItNowPrice=30000)
    route = respx.post(SEARCH_URL).mock(
        return_value=Response(200, json=index_response(rentable, purchase_only, count=7))
    )

    params = NearbySearchParams(radius_miles=25, keywords=["skid*"], limit=20, rentals_only=True)
    result = await service.search_near(params, config)

    assert [r.id for r in result.records] == ["rent"]
    assert result.total_count == 7
    body = _body(route.calls.last)
    assert f"POINT({HOME.longitude} {HOME.latitude})" in body["orderby"]
    assert body["top"] == 20


@pytest.mark.asyncio
@respx.mock
async def test_search_near_keeps_purchase_only_by_default(service, config):
    purchase_only = make_doc("buy", rentalRate=None, buyItNowEnabled=True, buyItNowPrice=30000)
    respx.post(SEARCH_URL).mock(return_value=Response(200, json=index_response(purchase_only)))

    result = await service.search_near(NearbySearchParams(lat=30.0, lon=-92.0), config)

    assert [r.id for r in result.records] == ["buy"]
    assert result.records[0].buy_it_now_only is True


@pytest.mark.asyncio
@respx.mock
async def test_list_buy_now_machines_merges_local_and_remote(service, config):
    local = [make_doc("local-1", buyItNowEnabled=True, buyItNowPrice=10000)]
    remote = [
        make_doc("local-1", buyItNowEnabled=True, buyItNowPrice=10000),
        make_doc("far-1", coords=FAR_AWAY, buyItNowEnabled=True, buyItNowPrice=20000),
    ]

    def respond(request):
        body = json.loads(request.content)
        assert body["orderby"] == "buyItNowPrice asc"
        assert "(buyItNowEnabled eq true)" in body["filter"]
        if "geo.distance" in body["filter"]:
            assert body["top"] == 25
            return Response(200, json=index_response(*local))
        assert body["top"] == 1000
        return Response(200, json=index_response(*remote))

    route = respx.post(SEARCH_URL).mock(side_effect=respond)

    result = await service.list_buy_now_machines(config)

    assert route.call_count == 2
    assert [r.id for r in result.records] == ["local-1", "far-1"]
    assert result.records[1].location.city == "Lafayette"
    assert result.total_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_list_buy_now_machines_both_failing(service, config):
    respx.post(SEARCH_URL).mock(return_value=Response(500))
    result = await service.list_buy_now_machines(config)
    assert result.error == "Search failed with status 500"
