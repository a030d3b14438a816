from equipsearch.common.exceptions import ServiceNotConfiguredError
from equipsearch.config import settings
from equipsearch.core.search.schemas import SearchConfig
from equipsearch.core.search.service import SearchService, search_service
from equipsearch.integrations.sendgrid import EmailClient


def get_search_config() -> SearchConfig:
    if not settings.SEARCH_API_KEY:
        raise ServiceNotConfiguredError()
    return SearchConfig.from_settings()


def get_industry_search_config() -> SearchConfig:
    if not settings.SEARCH_API_KEY:
        raise ServiceNotConfiguredError()
    return SearchConfig.from_settings(cache_ttl_seconds=settings.INDUSTRY_CACHE_TTL_SECONDS)


def get_search_service() -> SearchService:
    return search_service


def get_email_client() -> EmailClient:
    return EmailClient()
