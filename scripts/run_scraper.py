"""Manual scraper runner for testing and debugging platforms.

Runs one platform's extraction and prints the normalized events. With
--save, performs a full pipeline run for that platform (dedup, upsert,
audit row) against the configured database and prints the summary.

Usage:
    python scripts/run_scraper.py --platform ticketsasa
    python scripts/run_scraper.py --platform mtickets --limit 5
    python scripts/run_scraper.py --platform hustle --save
"""

import asyncio
import argparse
import sys
import os

# Add backend to path so we can import eventcatalog modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from eventcatalog.core.exceptions import EventCatalogException
from eventcatalog.db.session import async_session_factory, engine
from eventcatalog.models import Base
from eventcatalog.scrapers.extraction_client import ExtractionClient
from eventcatalog.scrapers.platforms import get_platform, valid_platform_ids
from eventcatalog.scrapers.scraper_service import ScraperService
from eventcatalog.scrapers.utils.normalizer import normalize_event


async def preview_platform(platform_id: str, limit: int = 10):
    """Extract a platform and display the normalized events.

    Args:
        platform_id: Platform id (e.g., "ticketsasa")
        limit: Maximum number of events to display (default: 10)
    """
    platform = get_platform(platform_id)

    print(f"\n{'='*70}")
    print(f"  Running {platform.name} Scraper")
    print(f"{'='*70}")
    print(f"  🌐 URL: {platform.events_url}")
    print(f"  🧩 Strategy: {platform.parsing_strategy.value}")
    print(f"  📊 Display Limit: {limit}")
    print(f"{'='*70}\n")

    client = ExtractionClient()
    print(f"🔍 Extracting events...\n")
    result = await client.extract_platform_events(platform)

    events = [e for e in (normalize_event(raw, platform) for raw in result.events) if e]
    print(f"✅ Extracted {len(result.events)} raw events, {len(events)} normalized\n")

    for i, event in enumerate(events[:limit], 1):
        print(f"[{i}] {event.title}")
        print(f"    📅 Starts: {event.starts_at.isoformat() if event.starts_at else '-'}")
        if event.venue_name:
            print(f"    📍 Venue: {event.venue_name}")
        if event.price_range:
            print(f"    💰 Price: {event.price_range}")
        print(f"    🔑 External ID: {event.external_id}")
        print(f"    🔗 URL: {event.source_url[:80]}")
        print()

    undated = sum(1 for e in events if e.starts_at is None)
    print(f"{'='*70}")
    print(f"  Summary")
    print(f"{'='*70}")
    print(f"  Total Events: {len(events)}")
    print(f"  Displayed: {min(limit, len(events))}")
    print(f"  Without date: {undated}")
    print(f"{'='*70}\n")


async def save_platform(platform_id: str):
    """Run the full pipeline for one platform and display the run summary.

    Args:
        platform_id: Platform id (e.g., "ticketsasa")
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    service = ScraperService(async_session_factory)
    result = await service.run_scraper(platform_ids=[platform_id], trigger="manual")

    print(f"\n{'='*70}")
    print(f"  Run {'succeeded' if result.success else 'failed'} in {result.duration_ms} ms")
    print(f"{'='*70}")
    for p in result.platforms:
        print(f"  {p.platform_id}: found={p.events_found} inserted={p.events_inserted} updated={p.events_updated}")
        for error in p.errors:
            print(f"    ❌ {error}")
    print(f"  Total Events: {result.total_events}")
    print(f"{'='*70}\n")

    await engine.dispose()


def main():
    """Parse arguments and run the scraper."""
    parser = argparse.ArgumentParser(
        description="Run one ticketing platform's scraper for testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_scraper.py --platform ticketsasa
  python scripts/run_scraper.py --platform mtickets --limit 5
  python scripts/run_scraper.py --platform hustle --save
        """,
    )

    parser.add_argument(
        "--platform",
        required=True,
        choices=valid_platform_ids(),
        help="Platform id",
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of events to display (default: 10)",
    )

    parser.add_argument(
        "--save",
        action="store_true",
        help="Run the full pipeline and write to the database",
    )

    args = parser.parse_args()

    try:
        if args.save:
            asyncio.run(save_platform(args.platform))
        else:
            asyncio.run(preview_platform(args.platform, args.limit))
    except EventCatalogException as e:
        print(f"\n❌ {type(e).__name__}: {e.message}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
