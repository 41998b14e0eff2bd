"""FastAPI dependency injection providers."""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from eventcatalog.db.session import async_session_factory
from eventcatalog.scrapers.scheduler import ScraperScheduler
from eventcatalog.scrapers.scraper_service import ScraperService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_scraper_service(request: Request) -> ScraperService:
    """Orchestrator built during application start-up."""
    return request.app.state.scraper_service


def get_scraper_scheduler(request: Request) -> ScraperScheduler:
    """Scheduler owning the run guard shared by scheduled and manual runs."""
    return request.app.state.scraper_scheduler
