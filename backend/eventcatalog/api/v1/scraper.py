"""Scraper admin endpoints.

Manual runs share the scheduler's run guard, so a request arriving while
a scheduled or catch-up run is in flight is rejected with 409 instead of
starting a second, overlapping run.
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventcatalog.dependencies import get_db, get_scraper_scheduler, get_scraper_service
from eventcatalog.core.exceptions import ConfigurationError, ScraperBusyError, UnknownPlatformError
from eventcatalog.schemas import (
    PlatformRunSummary,
    PlatformStatusResponse,
    SchedulerStateResponse,
    ScraperRunRecord,
    ScraperRunRequest,
    ScraperRunResponse,
    ScraperStatusResponse,
)
from eventcatalog.scrapers.platforms import PLATFORM_CONFIGS, get_platform
from eventcatalog.scrapers.scheduler import ScraperScheduler
from eventcatalog.scrapers.scraper_service import ScraperService
from eventcatalog.services.scraper_run_service import ScraperRunService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/run", response_model=ScraperRunResponse)
async def run_scraper(
    request: Optional[ScraperRunRequest] = None,
    scraper_service: ScraperService = Depends(get_scraper_service),
    scheduler: ScraperScheduler = Depends(get_scraper_scheduler),
):
    """Run the pipeline now for all platforms or the requested subset.

    Raises:
        HTTPException: 503 when the extraction credential is missing,
            400 when no requested platform id is valid,
            409 when a run is already in progress.
    """
    if not scraper_service.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scraper not configured (FIRECRAWL_API_KEY missing)",
        )

    try:
        platform_ids = request.platforms if request else None
        result = await scheduler.run_now(platform_ids=platform_ids)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    except UnknownPlatformError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "No valid platforms requested", "valid_platforms": e.valid},
        )
    except ScraperBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    logger.info(
        "manual_scraper_run_complete",
        success=result.success,
        total_events=result.total_events,
    )

    return ScraperRunResponse(
        success=result.success,
        duration_ms=result.duration_ms,
        total_events=result.total_events,
        platforms=[
            PlatformRunSummary(
                id=p.platform_id,
                name=get_platform(p.platform_id).name,
                success=p.success,
                events_found=p.events_found,
                events_inserted=p.events_inserted,
                events_updated=p.events_updated,
                errors=p.errors,
                duration_ms=p.duration_ms,
            )
            for p in result.platforms
        ],
    )


@router.get("/status", response_model=ScraperStatusResponse)
async def scraper_status(
    scraper_service: ScraperService = Depends(get_scraper_service),
    scheduler: ScraperScheduler = Depends(get_scraper_scheduler),
):
    """Configuration, catalog freshness, scheduler state and per-platform counts."""
    pipeline = await scraper_service.get_scraper_status()

    platforms = [
        PlatformStatusResponse(
            id=platform_id.value,
            name=config.name,
            event_count=pipeline.platforms[platform_id.value].count,
            last_scraped=pipeline.platforms[platform_id.value].last_scraped,
        )
        for platform_id, config in PLATFORM_CONFIGS.items()
    ]

    return ScraperStatusResponse(
        configured=pipeline.configured,
        last_run=pipeline.last_run,
        scheduler=SchedulerStateResponse(**scheduler.get_state()),
        platforms=platforms,
    )


@router.get("/runs", response_model=List[ScraperRunRecord])
async def recent_runs(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Most recent audit rows, newest first."""
    runs = await ScraperRunService(db).get_recent_runs(limit=limit)
    return [ScraperRunRecord.model_validate(run) for run in runs]
