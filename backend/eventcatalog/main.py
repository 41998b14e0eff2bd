"""Event Catalog ingestion backend -- FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventcatalog import __version__
from eventcatalog.api.v1.router import api_v1_router
from eventcatalog.config import settings
from eventcatalog.db.session import async_session_factory, engine
from eventcatalog.models import Base
from eventcatalog.scrapers.extraction_client import ExtractionClient
from eventcatalog.scrapers.platforms import validate_registry
from eventcatalog.scrapers.scheduler import ScraperScheduler
from eventcatalog.scrapers.scraper_service import ScraperService

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    # Startup
    logger.info("Starting Event Catalog ingestion server...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # A broken registry is a programming error; fail start-up loudly
    validate_registry()

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables verified/created")
    except Exception as e:
        logger.error(f"Database init failed: {e}", exc_info=True)

    if not settings.is_extraction_configured:
        logger.warning("FIRECRAWL_API_KEY not set; scraper runs will be rejected")

    extraction_client = ExtractionClient()
    scraper_service = ScraperService(async_session_factory, extraction_client=extraction_client)
    scheduler = ScraperScheduler(scraper_service)
    app.state.scraper_service = scraper_service
    app.state.scraper_scheduler = scheduler

    # Start scraper scheduler (only when enabled and outside tests)
    if settings.ENABLE_SCRAPER_SCHEDULER and settings.ENVIRONMENT != "test":
        logger.info("Initializing scraper scheduler...")
        scheduler.start()
    else:
        logger.info("Scraper scheduler disabled")

    yield

    # Shutdown
    logger.info("Shutting down Event Catalog ingestion server...")
    if scheduler.state.active:
        logger.info("Stopping scraper scheduler...")
        scheduler.stop()
    await engine.dispose()


app = FastAPI(
    title="Event Catalog Ingestion API",
    description="Event listing aggregation pipeline",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Event Catalog Ingestion API",
        "version": __version__,
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
