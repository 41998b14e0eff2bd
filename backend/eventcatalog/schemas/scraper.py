"""Pydantic schemas for the scraper admin endpoints."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ScraperRunRequest(BaseModel):
    """Manual run request; all platforms when ``platforms`` is omitted."""

    platforms: Optional[List[str]] = Field(
        None,
        description="Platform ids to scrape",
        examples=[["ticketsasa", "mtickets"]],
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PlatformRunSummary(BaseModel):
    """Outcome of one platform within a run."""

    id: str
    name: str
    success: bool
    events_found: int = 0
    events_inserted: int = 0
    events_updated: int = 0
    errors: List[str] = []
    duration_ms: int = 0


class ScraperRunResponse(BaseModel):
    """Summary returned by a manual run."""

    success: bool
    duration_ms: int
    total_events: int
    platforms: List[PlatformRunSummary]


class PlatformStatusResponse(BaseModel):
    """Catalog statistics for one platform."""

    id: str
    name: str
    event_count: int
    last_scraped: Optional[datetime] = None


class SchedulerStateResponse(BaseModel):
    """Snapshot of the scheduler's in-memory state."""

    active: bool
    is_running: bool
    phase: str
    retry_attempt: int = 0
    last_result: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None


class ScraperStatusResponse(BaseModel):
    """Pipeline configuration, freshness and scheduler state."""

    configured: bool
    last_run: Optional[datetime] = None
    scheduler: Optional[SchedulerStateResponse] = None
    platforms: List[PlatformStatusResponse]


class ScraperRunRecord(BaseModel):
    """One row of the scraper_runs audit table."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str
    trigger: str
    total_events: int
    events_inserted: int
    events_updated: int
    platform_results: Optional[List[Dict[str, Any]]] = None
    error_message: Optional[str] = None
