from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Upstream search index
    SEARCH_API_KEY: str = ""
    SEARCH_API_URL: str = (
        "https://kimber-rubbl-search.search.windows.net/indexes/machines/docs/search"
        "?api-version=2020-06-30"
    )
    SEARCH_TIMEOUT_SECONDS: float = 15.0
    SEARCH_CACHE_ENABLED: bool = True
    SEARCH_CACHE_TTL_SECONDS: int = 300
    INDUSTRY_CACHE_TTL_SECONDS: int = 900
    SEARCH_MAX_REQUESTS_PER_SECOND: int = 2
    SEARCH_MAX_RETRIES: int = 3
    SEARCH_RETRY_BASE_DELAY_MS: int = 250

    # Image storage for relative thumbnail / image paths
    IMAGE_BASE_URL: str = "https://kimberrubblstg.blob.core.windows.net"

    # Home market
    HOME_MARKET_LATITUDE: float = 30.2241
    HOME_MARKET_LONGITUDE: float = -92.0198
    HOME_MARKET_CITY: str = "Lafayette"
    HOME_MARKET_STATE: str = "LA"
    SERVICE_RADIUS_MILES: float = 50.0

    # Industry catalog (empty = packaged common_industries.json)
    INDUSTRY_CATALOG_PATH: str = ""

    # SendGrid
    SENDGRID_API_KEY: str = "mock_sendgrid_key"
    FROM_EMAIL: str = "no-reply@lafayetteequipmentrentals.com"
    CONTACT_EMAIL: str = "rentals@lafayetteequipmentrentals.com"

    # App
    APP_ENV: str = "development"
    ALLOWED_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
