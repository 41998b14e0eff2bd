"""SQLAlchemy models for the event catalog.

All models are imported here so metadata.create_all can discover them.
"""

from eventcatalog.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from eventcatalog.models.event import Event
from eventcatalog.models.scraper_run import ScraperRun

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Event",
    "ScraperRun",
]
