"""Scraper run audit service."""

from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventcatalog.models.scraper_run import ScraperRun
from eventcatalog.scrapers.base import ScraperRunResult

logger = structlog.get_logger(__name__)


class ScraperRunService:
    """Writes and reads the append-only scraper_runs audit table."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="scraper_run_service")

    async def record_run(self, result: ScraperRunResult, trigger: str = "manual") -> ScraperRun:
        """Persist one run summary.

        Args:
            result: Aggregate run result
            trigger: What started the run

        Returns:
            The stored ScraperRun
        """
        run = ScraperRun(
            started_at=result.started_at,
            completed_at=result.completed_at,
            status="completed" if result.success else "failed",
            trigger=trigger,
            total_events=result.total_events,
            events_inserted=result.events_inserted,
            events_updated=result.events_updated,
            platform_results=[p.to_dict() for p in result.platforms],
            error_message=result.error_summary(),
        )
        self.db.add(run)
        await self.db.commit()
        await self.db.refresh(run)

        self.logger.info(
            "scraper_run_recorded",
            run_id=str(run.id),
            status=run.status,
            trigger=trigger,
            total_events=run.total_events,
        )
        return run

    async def get_recent_runs(self, limit: int = 20) -> List[ScraperRun]:
        """Most recent runs, newest first."""
        result = await self.db.execute(
            select(ScraperRun).order_by(ScraperRun.started_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
