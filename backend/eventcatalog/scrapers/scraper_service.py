"""Scraper orchestration service.

Drives one run across the configured platforms: extraction, normalization,
cross-platform deduplication, idempotent upserts, and the audit record.
Platforms are processed strictly one after another with a fixed delay in
between; a failure on one platform never aborts the others.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventcatalog.config import settings
from eventcatalog.core.exceptions import ConfigurationError
from eventcatalog.scrapers.base import (
    NormalizedEvent,
    PlatformScrapeResult,
    ScraperRunResult,
)
from eventcatalog.scrapers.extraction_client import ExtractionClient
from eventcatalog.scrapers.platforms import PLATFORM_CONFIGS, PlatformConfig, resolve_platforms
from eventcatalog.scrapers.utils.normalizer import calculate_title_similarity, normalize_event
from eventcatalog.services.event_service import EventService
from eventcatalog.services.scraper_run_service import ScraperRunService

logger = structlog.get_logger(__name__)


@dataclass
class PlatformStats:
    """Catalog statistics for one platform."""

    count: int = 0
    last_scraped: Optional[datetime] = None


@dataclass
class ScraperStatus:
    """Read-only snapshot of the pipeline's configuration and catalog freshness."""

    configured: bool
    last_run: Optional[datetime]
    platforms: Dict[str, PlatformStats] = field(default_factory=dict)


class ScraperService:
    """Service for orchestrating platform scrapes and storing the results.

    Acts as the bridge between the extraction client and the catalog store:
    fetch raw events → normalize → dedup → upsert → log run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        extraction_client: Optional[ExtractionClient] = None,
        platform_delay: Optional[float] = None,
        similarity_threshold: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize scraper service.

        Args:
            session_factory: Async session factory for store access
            extraction_client: Client for the extraction service
            platform_delay: Seconds to wait between platforms
            similarity_threshold: Title similarity at or above which an
                other-platform event on the same day counts as a duplicate
            sleep: Awaitable used for the inter-platform delay
        """
        self.session_factory = session_factory
        self.extraction_client = extraction_client or ExtractionClient()
        self.platform_delay = settings.PLATFORM_DELAY_SECONDS if platform_delay is None else platform_delay
        self.similarity_threshold = (
            settings.SIMILARITY_THRESHOLD if similarity_threshold is None else similarity_threshold
        )
        self._sleep = sleep
        self.logger = logger.bind(service="scraper_service")

    @property
    def is_configured(self) -> bool:
        return self.extraction_client.is_configured

    async def run_scraper(
        self,
        platform_ids: Optional[Iterable[str]] = None,
        trigger: str = "manual",
    ) -> ScraperRunResult:
        """Run the pipeline for the selected platforms (all by default).

        Args:
            platform_ids: Optional subset of platform ids
            trigger: Recorded on the audit row ('scheduled', 'catch_up', 'retry', 'manual')

        Returns:
            Aggregate run result; ``success`` is False if any platform failed

        Raises:
            ConfigurationError: If the extraction credential is missing
            UnknownPlatformError: If a selection was given but none of it is valid
        """
        if not self.is_configured:
            self.logger.error("scraper_not_configured")
            raise ConfigurationError("FIRECRAWL_API_KEY not configured")

        platforms = resolve_platforms(platform_ids)
        started_at = datetime.now(timezone.utc)
        results: List[PlatformScrapeResult] = []

        self.logger.info(
            "scraper_run_starting",
            trigger=trigger,
            platforms=[p.id.value for p in platforms],
        )

        async with self.session_factory() as db:
            for index, platform in enumerate(platforms):
                if index > 0 and self.platform_delay > 0:
                    self.logger.debug("platform_delay", seconds=self.platform_delay)
                    await self._sleep(self.platform_delay)

                results.append(await self.scrape_platform(platform, db))

        run_result = ScraperRunResult(
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            platforms=results,
        )

        self.logger.info(
            "scraper_run_complete",
            trigger=trigger,
            success=run_result.success,
            total_events=run_result.total_events,
            failed_platforms=[p.platform_id for p in results if not p.success],
            duration_ms=run_result.duration_ms,
        )

        await self._log_run(run_result, trigger)
        return run_result

    async def scrape_platform(self, platform: PlatformConfig, db: AsyncSession) -> PlatformScrapeResult:
        """Scrape one platform and upsert what it returns.

        Extraction failures are captured on the result instead of raised,
        except a missing credential, which stays fatal.

        Args:
            platform: Platform to scrape
            db: Session used for this run's store writes

        Returns:
            PlatformScrapeResult for this platform
        """
        start = time.monotonic()
        result = PlatformScrapeResult(platform_id=platform.id.value)
        log = self.logger.bind(platform=platform.id.value)

        log.info("platform_scrape_starting", name=platform.name)

        try:
            extracted = await self.extraction_client.extract_platform_events(platform)
        except ConfigurationError:
            raise
        except Exception as e:
            result.errors.append(str(e) or type(e).__name__)
            result.duration_ms = int((time.monotonic() - start) * 1000)
            log.error("platform_scrape_failed", error=str(e), exc_info=True)
            return result

        result.events_found = len(extracted.events)

        normalized_events: List[NormalizedEvent] = []
        for raw in extracted.events:
            normalized = normalize_event(raw, platform)
            if normalized:
                normalized_events.append(normalized)

        log.info(
            "platform_events_normalized",
            found=result.events_found,
            normalized=len(normalized_events),
        )

        event_service = EventService(db)
        for event in normalized_events:
            try:
                outcome = await self.upsert_event(event, event_service)
                if outcome is True:
                    result.events_inserted += 1
                elif outcome is False:
                    result.events_updated += 1
            except Exception as e:
                await db.rollback()
                result.errors.append(f'Failed to upsert "{event.title}": {e}')
                log.error(
                    "event_upsert_failed",
                    event_title=event.title[:50],
                    error=str(e),
                    exc_info=True,
                )
                # Continue processing other events

        result.success = not result.errors
        result.duration_ms = int((time.monotonic() - start) * 1000)

        log.info("platform_scrape_complete", **result.to_dict())
        return result

    async def upsert_event(self, event: NormalizedEvent, event_service: EventService) -> Optional[bool]:
        """Store one event unless another platform already lists it.

        Args:
            event: Normalized event
            event_service: Event service bound to the run's session

        Returns:
            True if inserted, False if updated, None if skipped as a
            cross-platform duplicate
        """
        if await self.is_cross_platform_duplicate(event, event_service):
            self.logger.info(
                "cross_platform_duplicate_skipped",
                platform=event.source_platform,
                event_title=event.title[:50],
            )
            return None

        return await event_service.upsert_event(event)

    async def is_cross_platform_duplicate(self, event: NormalizedEvent, event_service: EventService) -> bool:
        """Whether an event from another platform on the same day has a similar title."""
        if event.starts_at is None:
            return False

        candidates = await event_service.find_other_platform_events_on_day(event)
        for title, source_platform in candidates:
            similarity = calculate_title_similarity(event.title, title)
            if similarity >= self.similarity_threshold:
                self.logger.info(
                    "cross_platform_match",
                    event_title=event.title[:50],
                    existing_title=title[:50],
                    existing_platform=source_platform,
                    similarity=round(similarity, 3),
                )
                return True
        return False

    async def get_scraper_status(self) -> ScraperStatus:
        """Report configuration, last scrape time and per-platform counts."""
        async with self.session_factory() as db:
            event_service = EventService(db)
            last_run = await event_service.latest_scraped_at()
            stats = await event_service.platform_stats()

        platforms = {}
        for platform_id in PLATFORM_CONFIGS:
            count, last_scraped = stats.get(platform_id.value, (0, None))
            platforms[platform_id.value] = PlatformStats(count=count, last_scraped=last_scraped)

        return ScraperStatus(
            configured=self.is_configured,
            last_run=last_run,
            platforms=platforms,
        )

    async def _log_run(self, result: ScraperRunResult, trigger: str) -> None:
        """Write the audit row; failures are logged, never raised."""
        try:
            async with self.session_factory() as db:
                await ScraperRunService(db).record_run(result, trigger=trigger)
        except Exception as e:
            self.logger.error("scraper_run_log_failed", error=str(e), exc_info=True)
