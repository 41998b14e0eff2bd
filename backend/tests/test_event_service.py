"""Tests for the event store services on an in-memory SQLite database."""

from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from eventcatalog.scrapers.base import NormalizedEvent, PlatformScrapeResult, ScraperRunResult
from eventcatalog.services.event_service import EventService, to_utc
from eventcatalog.services.scraper_run_service import ScraperRunService

T0 = datetime(2025, 6, 1, 6, 0, tzinfo=timezone.utc)


def _event(
    title="Sauti Sol Live",
    platform="madfun",
    external_id="abc123",
    starts_at=datetime(2025, 12, 19, 16, 0, tzinfo=timezone.utc),
    **kwargs,
) -> NormalizedEvent:
    return NormalizedEvent(
        title=title,
        source_platform=platform,
        source_url=f"https://{platform}.test/events/{external_id}",
        external_id=external_id,
        starts_at=starts_at,
        **kwargs,
    )


class TestUpsertEvent:
    """Idempotent insert-or-update keyed on (source_platform, external_id)."""

    async def test_insert_new_event(self, test_db: AsyncSession):
        service = EventService(test_db)

        inserted = await service.upsert_event(_event(venue_name="KICC"), now=T0)

        assert inserted is True
        stored = await service.get_event("madfun", "abc123")
        assert stored.title == "Sauti Sol Live"
        assert stored.venue_name == "KICC"
        assert stored.is_external is True
        assert stored.status == "live"
        assert to_utc(stored.scraped_at) == T0
        assert to_utc(stored.starts_at) == datetime(2025, 12, 19, 16, 0, tzinfo=timezone.utc)

    async def test_reingest_updates_in_place(self, test_db: AsyncSession):
        service = EventService(test_db)
        later = T0 + timedelta(days=1)

        await service.upsert_event(_event(price_range="KES 1,000"), now=T0)
        inserted = await service.upsert_event(
            _event(title="Sauti Sol Live (Encore)", price_range="KES 1,500"),
            now=later,
        )

        assert inserted is False
        assert await service.count_events() == 1

        test_db.expire_all()
        stored = await service.get_event("madfun", "abc123")
        assert stored.title == "Sauti Sol Live (Encore)"
        assert stored.price_range == "KES 1,500"
        assert to_utc(stored.created_at) == T0
        assert to_utc(stored.scraped_at) == later

    async def test_same_external_id_on_other_platform_is_distinct(self, test_db: AsyncSession):
        service = EventService(test_db)

        assert await service.upsert_event(_event(platform="madfun"), now=T0) is True
        assert await service.upsert_event(_event(platform="hustle"), now=T0) is True
        assert await service.count_events() == 2
        assert await service.count_events("hustle") == 1


class TestSameDayLookup:
    """Candidates for cross-platform deduplication."""

    async def test_finds_other_platforms_on_local_day(self, test_db: AsyncSession):
        service = EventService(test_db)
        # 23:30 Nairobi on Dec 19
        await service.upsert_event(
            _event(title="Sauti Sol", platform="hustle", external_id="h1",
                   starts_at=datetime(2025, 12, 19, 20, 30, tzinfo=timezone.utc)),
            now=T0,
        )
        # 00:30 Nairobi on Dec 20, still Dec 19 in UTC
        await service.upsert_event(
            _event(title="After Party", platform="hustle", external_id="h2",
                   starts_at=datetime(2025, 12, 19, 21, 30, tzinfo=timezone.utc)),
            now=T0,
        )
        # Same platform is never a cross-platform candidate
        await service.upsert_event(
            _event(title="Sauti Sol Again", platform="madfun", external_id="m1"),
            now=T0,
        )

        candidates = await service.find_other_platform_events_on_day(
            _event(platform="madfun", external_id="m2"),
            tz_name="Africa/Nairobi",
        )

        assert candidates == [("Sauti Sol", "hustle")]

    async def test_undated_event_has_no_candidates(self, test_db: AsyncSession):
        service = EventService(test_db)
        await service.upsert_event(_event(platform="hustle"), now=T0)

        assert await service.find_other_platform_events_on_day(_event(starts_at=None)) == []


class TestCatalogStats:
    """Freshness and per-platform counts."""

    async def test_empty_catalog(self, test_db: AsyncSession):
        service = EventService(test_db)

        assert await service.latest_scraped_at() is None
        assert await service.platform_stats() == {}

    async def test_stats_per_platform(self, test_db: AsyncSession):
        service = EventService(test_db)
        later = T0 + timedelta(hours=2)

        await service.upsert_event(_event(platform="madfun", external_id="m1"), now=T0)
        await service.upsert_event(_event(platform="madfun", external_id="m2"), now=later)
        await service.upsert_event(_event(platform="hustle", external_id="h1"), now=T0)

        assert await service.latest_scraped_at() == later
        assert await service.platform_stats() == {
            "madfun": (2, later),
            "hustle": (1, T0),
        }


class TestScraperRunService:
    """Append-only run audit."""

    def _result(self, started_at, *platforms):
        return ScraperRunResult(
            started_at=started_at,
            completed_at=started_at + timedelta(seconds=42),
            platforms=list(platforms),
        )

    async def test_record_successful_run(self, test_db: AsyncSession):
        service = ScraperRunService(test_db)
        result = self._result(
            T0,
            PlatformScrapeResult("madfun", success=True, events_found=3, events_inserted=2, events_updated=1),
        )

        run = await service.record_run(result, trigger="scheduled")

        assert run.status == "completed"
        assert run.trigger == "scheduled"
        assert run.total_events == 3
        assert run.events_inserted == 2
        assert run.events_updated == 1
        assert run.error_message is None
        assert run.platform_results[0]["platform_id"] == "madfun"

    async def test_record_failed_run(self, test_db: AsyncSession):
        service = ScraperRunService(test_db)
        result = self._result(
            T0,
            PlatformScrapeResult("madfun", success=True, events_inserted=2),
            PlatformScrapeResult("hustle", success=False, errors=["No events found"]),
        )

        run = await service.record_run(result)

        assert run.status == "failed"
        assert run.trigger == "manual"
        assert run.error_message == "hustle: No events found"

    async def test_recent_runs_newest_first(self, test_db: AsyncSession):
        service = ScraperRunService(test_db)
        for hours in (0, 2, 1):
            await service.record_run(self._result(T0 + timedelta(hours=hours)))

        runs = await service.get_recent_runs(limit=2)

        assert [to_utc(r.started_at) for r in runs] == [T0 + timedelta(hours=2), T0 + timedelta(hours=1)]
