"""Event service for reading and writing the events catalog.

Handles the idempotent upsert keyed on (source_platform, external_id),
the same-day lookup used for cross-platform deduplication, and the
per-platform statistics behind the status endpoint.
"""

import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventcatalog.config import settings
from eventcatalog.models.event import Event
from eventcatalog.scrapers.base import NormalizedEvent

logger = structlog.get_logger(__name__)

# Columns refreshed when a listing is re-ingested
UPDATABLE_COLUMNS = (
    "title",
    "description",
    "image_url",
    "starts_at",
    "venue_name",
    "organizer_name",
    "price_range",
    "source_url",
)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Coerce a datetime to aware UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventService:
    """Service for the events table."""

    def __init__(self, db: AsyncSession):
        """Initialize event service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="event_service")

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite_insert(Event)
        return pg_insert(Event)

    async def upsert_event(self, event: NormalizedEvent, now: Optional[datetime] = None) -> bool:
        """Insert or update an event by its (source_platform, external_id) key.

        Inserted rows get identical created_at / scraped_at stamps, so the
        returned row tells a fresh insert from an update. If the store still
        reports a unique violation, the existing row is updated explicitly.

        Args:
            event: Normalized event
            now: Ingestion timestamp (default: current UTC time)

        Returns:
            True if a new row was inserted, False if an existing row was updated
        """
        now = now or datetime.now(timezone.utc)
        row = event.to_row()
        row["starts_at"] = to_utc(row["starts_at"])

        changes = {column: row[column] for column in UPDATABLE_COLUMNS}
        changes.update(scraped_at=now, updated_at=now)

        stmt = self._insert().values(
            id=uuid.uuid4(),
            created_at=now,
            updated_at=now,
            scraped_at=now,
            **row,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["source_platform", "external_id"],
            set_=changes,
        ).returning(Event.created_at, Event.scraped_at)

        try:
            result = await self.db.execute(stmt)
            stamps = result.one()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            self.logger.warning(
                "upsert_conflict_fallback",
                source_platform=event.source_platform,
                external_id=event.external_id,
            )
            await self._update_existing(event, changes)
            return False

        inserted = to_utc(stamps.created_at) == to_utc(stamps.scraped_at)
        self.logger.debug(
            "event_upserted",
            source_platform=event.source_platform,
            external_id=event.external_id,
            is_new=inserted,
        )
        return inserted

    async def _update_existing(self, event: NormalizedEvent, changes: Dict) -> None:
        await self.db.execute(
            update(Event)
            .where(and_(
                Event.source_platform == event.source_platform,
                Event.external_id == event.external_id,
            ))
            .values(**changes)
        )
        await self.db.commit()

    async def find_other_platform_events_on_day(
        self,
        event: NormalizedEvent,
        tz_name: Optional[str] = None,
    ) -> List[Tuple[str, str]]:
        """Find events from other platforms starting on the same calendar day.

        The day is taken in the scrape timezone.

        Args:
            event: Normalized event with a known start time
            tz_name: Zone defining the calendar day (default: settings.SCRAPE_TIMEZONE)

        Returns:
            List of (title, source_platform) tuples
        """
        if event.starts_at is None:
            return []

        tz = ZoneInfo(tz_name or settings.SCRAPE_TIMEZONE)
        local_day = to_utc(event.starts_at).astimezone(tz).date()
        day_start = datetime.combine(local_day, time.min, tzinfo=tz)
        day_end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)

        result = await self.db.execute(
            select(Event.title, Event.source_platform).where(and_(
                Event.source_platform != event.source_platform,
                Event.starts_at >= to_utc(day_start),
                Event.starts_at < to_utc(day_end),
            ))
        )
        return [(row.title, row.source_platform) for row in result.all()]

    async def get_event(self, source_platform: str, external_id: str) -> Optional[Event]:
        result = await self.db.execute(
            select(Event).where(and_(
                Event.source_platform == source_platform,
                Event.external_id == external_id,
            ))
        )
        return result.scalar_one_or_none()

    async def count_events(self, source_platform: Optional[str] = None) -> int:
        """Count events, optionally for one platform."""
        query = select(func.count(Event.id))
        if source_platform:
            query = query.where(Event.source_platform == source_platform)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def latest_scraped_at(self) -> Optional[datetime]:
        """Most recent scraped_at across all events, or None if never scraped."""
        result = await self.db.execute(select(func.max(Event.scraped_at)))
        return to_utc(result.scalar())

    async def platform_stats(self) -> Dict[str, Tuple[int, Optional[datetime]]]:
        """Event count and last scrape time per platform.

        Returns:
            Dict mapping source_platform -> (count, last_scraped_at)
        """
        result = await self.db.execute(
            select(
                Event.source_platform,
                func.count(Event.id),
                func.max(Event.scraped_at),
            ).group_by(Event.source_platform)
        )
        return {
            platform: (count, to_utc(last_scraped))
            for platform, count, last_scraped in result.all()
        }
