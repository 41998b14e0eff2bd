"""Data structures shared across the ingestion pipeline.

Raw records come back from the extraction service untrusted; the
normalizer turns them into NormalizedEvent rows, and the orchestrator
summarises each run as PlatformScrapeResult / ScraperRunResult.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


_RAW_FIELDS = {
    "title": "title",
    "description": "description",
    "imageUrl": "image_url",
    "date": "date",
    "time": "time",
    "venue": "venue",
    "organizer": "organizer",
    "price": "price",
    "ticketUrl": "ticket_url",
}


@dataclass
class RawExtractedEvent:
    """Unstructured event record as returned by the extraction service.

    Nothing is guaranteed: any field may be missing or malformed.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    venue: Optional[str] = None
    organizer: Optional[str] = None
    price: Optional[str] = None
    ticket_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "RawExtractedEvent":
        """Build from a camelCase service payload, dropping non-string values.

        Args:
            payload: One item of the service's ``events`` array

        Returns:
            RawExtractedEvent (empty when the payload is not a mapping)
        """
        if not isinstance(payload, dict):
            return cls()

        values = {}
        for key, attr in _RAW_FIELDS.items():
            value = payload.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            values[attr] = value if isinstance(value, str) else None
        return cls(**values)


@dataclass
class ExtractResult:
    """Outcome of one successful extraction for a platform."""

    events: List[RawExtractedEvent] = field(default_factory=list)


@dataclass
class NormalizedEvent:
    """Canonical event record ready for storage."""

    title: str
    source_platform: str
    source_url: str
    external_id: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    starts_at: Optional[datetime] = None
    venue_name: Optional[str] = None
    organizer_name: Optional[str] = None
    price_range: Optional[str] = None
    is_external: bool = True
    ticketing_type: str = "external"
    source: str = "scraper"
    status: str = "live"

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.title:
            raise ValueError("title is required")
        if len(self.title) > 255:
            raise ValueError("title must be at most 255 characters")
        if not self.external_id:
            raise ValueError("external_id is required")

    def to_row(self) -> Dict[str, Any]:
        """Column values for the events table."""
        return {
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "starts_at": self.starts_at,
            "venue_name": self.venue_name,
            "organizer_name": self.organizer_name,
            "price_range": self.price_range,
            "source_platform": self.source_platform,
            "source_url": self.source_url,
            "external_id": self.external_id,
            "is_external": self.is_external,
            "ticketing_type": self.ticketing_type,
            "source": self.source,
            "status": self.status,
        }


@dataclass
class PlatformScrapeResult:
    """Per-platform outcome of one run."""

    platform_id: str
    success: bool = False
    events_found: int = 0
    events_inserted: int = 0
    events_updated: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform_id": self.platform_id,
            "success": self.success,
            "events_found": self.events_found,
            "events_inserted": self.events_inserted,
            "events_updated": self.events_updated,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


@dataclass
class ScraperRunResult:
    """Aggregate of every PlatformScrapeResult for one orchestrator run."""

    started_at: datetime
    completed_at: datetime
    platforms: List[PlatformScrapeResult] = field(default_factory=list)

    @property
    def total_events(self) -> int:
        return self.events_inserted + self.events_updated

    @property
    def events_inserted(self) -> int:
        return sum(p.events_inserted for p in self.platforms)

    @property
    def events_updated(self) -> int:
        return sum(p.events_updated for p in self.platforms)

    @property
    def success(self) -> bool:
        """Logical AND of every platform's success."""
        return all(p.success for p in self.platforms)

    @property
    def duration_ms(self) -> int:
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def error_summary(self) -> Optional[str]:
        """One-line summary of failed platforms, or None when all succeeded."""
        if self.success:
            return None
        return "; ".join(
            f"{p.platform_id}: {', '.join(p.errors)}" for p in self.platforms if not p.success
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "total_events": self.total_events,
            "success": self.success,
            "platforms": [p.to_dict() for p in self.platforms],
        }
