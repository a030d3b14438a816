import httpx
import pytest
import respx
from httpx import Response

from conftest import SEARCH_URL
from equipsearch.common.enums import EmailFormType
from equipsearch.config import settings
from equipsearch.integrations import EmailClient, SearchIndexClient
from equipsearch.integrations.search_index import backoff_delay
from equipsearch.integrations.sendgrid import EmailPayload, render_html


def test_backoff_delay_doubles_with_jitter():
    for attempt in range(4):
        delay = backoff_delay(attempt, 0.25)
        assert 0.25 * 2**attempt <= delay <= 0.25 * 2**attempt + 0.1


@pytest.mark.asyncio
@respx.mock
async def test_search_index_health_check(monkeypatch):
    monkeypatch.setattr(settings, "SEARCH_API_KEY", "test-key")
    monkeypatch.setattr(settings, "SEARCH_API_URL", SEARCH_URL)
    route = respx.post(SEARCH_URL).mock(return_value=Response(200, json={"value": []}))

    assert await SearchIndexClient().health_check() is True
    assert route.calls.last.request.headers["api-key"] == "test-key"


@pytest.mark.asyncio
@respx.mock
async def test_search_index_health_check_unreachable(monkeypatch):
    monkeypatch.setattr(settings, "SEARCH_API_KEY", "test-key")
    monkeypatch.setattr(settings, "SEARCH_API_URL", SEARCH_URL)
    respx.post(SEARCH_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

    assert await SearchIndexClient().health_check() is False


@pytest.mark.asyncio
async def test_search_index_health_check_not_configured(monkeypatch):
    monkeypatch.setattr(settings, "SEARCH_API_KEY", "")
    assert await SearchIndexClient().health_check() is False


@pytest.mark.asyncio
async def test_search_index_calls_acquire_per_attempt():
    attempts = []

    async def acquire():
        attempts.append(1)

    async def no_sleep(seconds):
        pass

    statuses = iter([503, 429, 200])
    transport = httpx.MockTransport(lambda request: Response(next(statuses), json={"value": []}))
    client = SearchIndexClient(sleep=no_sleep, transport=transport)

    resp = await client.search(
        {"search": ""}, api_url=SEARCH_URL, api_key="k", max_retries=3, base_delay=0, acquire=acquire,
    )

    assert resp.status_code == 200
    assert len(attempts) == 3


def test_render_html_escapes_fields():
    payload = EmailPayload(
        form_type=EmailFormType.QUOTE,
        customer_name="<Pat>",
        customer_email="pat@example.com",
        fields={"notes": "needs a 60' boom & trailer", "empty": ""},
    )
    body = render_html(payload)
    assert "New quote request" in body
    assert "&lt;Pat&gt;" in body
    assert "60&#x27; boom &amp; trailer" in body
    assert "empty" not in body
    assert "Phone" not in body


@pytest.mark.asyncio
@respx.mock
async def test_email_client_sends_through_sendgrid(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.real")
    route = respx.post("https://api.sendgrid.com/v3/mail/send").mock(
        return_value=Response(202, headers={"X-Message-Id": "sg-123"})
    )
    payload = EmailPayload(form_type=EmailFormType.BUY_NOW, customer_name="Pat", customer_email="pat@example.com")

    result = await EmailClient().submit(payload)

    assert result["status"] == "sent"
    assert result["message_id"] == "sg-123"
    assert route.calls.last.request.headers["Authorization"] == "Bearer SG.real"


@pytest.mark.asyncio
async def test_email_client_mock_health(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "mock_key")
    assert await EmailClient().health_check() is True
