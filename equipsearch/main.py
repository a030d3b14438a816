from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from equipsearch.api.middleware import RequestTimingMiddleware
from equipsearch.api.v1.router import v1_router
from equipsearch.common.logging import get_logger, setup_logging
from equipsearch.config import settings
from equipsearch.core.industries.catalog import load_common_industries
from equipsearch.core.search.service import search_service
from equipsearch.integrations import EmailClient

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if not settings.SEARCH_API_KEY:
        logger.warning("SEARCH_API_KEY is not set; search endpoints will return 500")
    logger.info("Loaded %d industries", len(load_common_industries()))
    yield
    search_service.clear_cache()


app = FastAPI(
    title="Equipment Search API",
    description="Inventory search and browse-by-industry aggregation for the rental site",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestTimingMiddleware)

# API routes
app.include_router(v1_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "equipsearch",
        "version": "1.0.0",
        "env": settings.APP_ENV,
        "search_configured": bool(settings.SEARCH_API_KEY),
        "cache_entries": len(search_service.cache),
    }


@app.get("/health/integrations")
async def integrations_health():
    reports = [
        await search_service.index.health_report(),
        await EmailClient().health_report(),
    ]
    return {"healthy": all(r["healthy"] for r in reports), "integrations": reports}
