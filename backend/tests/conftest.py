"""Pytest configuration and shared fixtures."""

import os

# Must be set before eventcatalog.config is imported
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["FIRECRAWL_API_KEY"] = ""

from typing import Dict, List, Optional, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from eventcatalog.models import Base
from eventcatalog.scrapers.base import ExtractResult, RawExtractedEvent
from eventcatalog.scrapers.platforms import PlatformConfig


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncSession:
    """A single session on the in-memory database."""
    async with session_factory() as session:
        yield session


# ============================================================================
# EXTRACTION
# ============================================================================

class FakeExtractionClient:
    """Stands in for ExtractionClient with canned per-platform outcomes.

    Each outcome is either a list of raw events or an exception to raise.
    Platforms without an outcome return no events at all.
    """

    def __init__(
        self,
        outcomes: Optional[Dict[str, Union[List[RawExtractedEvent], Exception]]] = None,
        configured: bool = True,
    ):
        self.outcomes = outcomes or {}
        self.configured = configured
        self.calls: List[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def extract_platform_events(self, platform: PlatformConfig, **kwargs) -> ExtractResult:
        self.calls.append(platform.id.value)
        outcome = self.outcomes.get(platform.id.value, [])
        if isinstance(outcome, Exception):
            raise outcome
        return ExtractResult(events=list(outcome))


@pytest.fixture
def fake_extraction_client():
    """Factory for FakeExtractionClient instances."""
    return FakeExtractionClient


@pytest.fixture
def no_sleep():
    """Recording replacement for asyncio.sleep."""
    delays: List[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep
