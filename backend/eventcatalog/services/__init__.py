"""Store-facing services for events and scraper run audits."""

from eventcatalog.services.event_service import EventService
from eventcatalog.services.scraper_run_service import ScraperRunService

__all__ = ["EventService", "ScraperRunService"]
