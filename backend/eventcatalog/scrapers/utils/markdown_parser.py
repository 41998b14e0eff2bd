"""Text-pattern parser for listing pages scraped as markdown.

Used for platforms whose structured extraction is unreliable. The page
is split on the date stamps that head every event card, and each card's
title link, venue, price and image are picked out of the text that
follows its stamp.
"""

import re
from typing import List, Optional
from urllib.parse import urljoin

from eventcatalog.scrapers.base import RawExtractedEvent


# "SUN 21 DEC 2025 11:00 AM"
_STAMP_PATTERN = re.compile(r"([A-Z]{3}\s+\d{1,2}\s+[A-Z]{3}\s+\d{4}\s+\d{1,2}:\d{2}\s+[AP]M)")
_STAMP_DATE_PATTERN = re.compile(r"([A-Z]{3}\s+\d{1,2}\s+[A-Z]{3}\s+\d{4})")
_STAMP_TIME_PATTERN = re.compile(r"(\d{1,2}:\d{2}\s+[AP]M)")

# [Title](/events/slug "Title")
_TITLE_LINK_PATTERN = re.compile(r'\[([^\]]+)\]\((\S+)\s+"[^"]*"\)')
_VENUE_PATTERN = re.compile(r"\s*([^\n]+?)(?=\s+Starting|\s+FREE|\s*\n|\s*$)")
_PRICE_PATTERN = re.compile(r"(Starting\s+KES\s+[\d,]+|FREE)", re.IGNORECASE)
_IMAGE_PATTERN = re.compile(r"!\[[^\]]*\]\(([^)\s]+)")
_PRICE_WORDS = ("starting", "free")


def _absolute(url: Optional[str], base_url: str) -> Optional[str]:
    if not url:
        return None
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url, url)


def _parse_card(stamp: str, content: str, base_url: str) -> Optional[RawExtractedEvent]:
    link = _TITLE_LINK_PATTERN.search(content)
    if not link:
        return None

    venue = None
    venue_match = _VENUE_PATTERN.match(content[link.end():])
    if venue_match:
        venue = venue_match.group(1).strip()
        if not venue or venue.lower().startswith(_PRICE_WORDS):
            venue = None

    price_match = _PRICE_PATTERN.search(content)
    image_match = _IMAGE_PATTERN.search(content)
    date_match = _STAMP_DATE_PATTERN.search(stamp)
    time_match = _STAMP_TIME_PATTERN.search(stamp)

    return RawExtractedEvent(
        title=link.group(1).strip(),
        ticket_url=_absolute(link.group(2), base_url),
        venue=venue,
        price=price_match.group(0) if price_match else None,
        image_url=_absolute(image_match.group(1), base_url) if image_match else None,
        date=date_match.group(1) if date_match else None,
        time=time_match.group(1) if time_match else None,
    )


def parse_listing_markdown(markdown: str, base_url: str) -> List[RawExtractedEvent]:
    """Parse a markdown listing page into raw events.

    Args:
        markdown: Markdown document returned by the scrape endpoint
        base_url: Site root used to absolutize relative links

    Returns:
        Raw events in page order; cards without a titled link are skipped
    """
    if not markdown:
        return []

    events: List[RawExtractedEvent] = []
    sections = _STAMP_PATTERN.split(markdown)

    # split() yields [preamble, stamp, content, stamp, content, ...]
    for i in range(1, len(sections), 2):
        stamp = sections[i]
        content = sections[i + 1] if i + 1 < len(sections) else ""
        event = _parse_card(stamp, content, base_url)
        if event:
            events.append(event)

    return events
