"""Pydantic schemas for the Event Catalog admin API.

All request/response models are defined here for easy import.
"""

from eventcatalog.schemas.health import HealthCheckResponse
from eventcatalog.schemas.scraper import (
    PlatformRunSummary,
    PlatformStatusResponse,
    SchedulerStateResponse,
    ScraperRunRecord,
    ScraperRunRequest,
    ScraperRunResponse,
    ScraperStatusResponse,
)

__all__ = [
    # Health
    "HealthCheckResponse",
    # Scraper
    "PlatformRunSummary",
    "PlatformStatusResponse",
    "SchedulerStateResponse",
    "ScraperRunRecord",
    "ScraperRunRequest",
    "ScraperRunResponse",
    "ScraperStatusResponse",
]
