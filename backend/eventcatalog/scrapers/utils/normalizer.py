"""Normalization of raw extracted events into canonical catalog rows.

Everything here is pure and deterministic given ``now``: date parsing,
fingerprinting, field cleanup and the title similarity used for
cross-platform deduplication.
"""

import hashlib
import re
from datetime import datetime, timezone
from functools import partial
from typing import Callable, List, Optional, Set
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

import structlog
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from eventcatalog.config import settings
from eventcatalog.scrapers.base import NormalizedEvent, RawExtractedEvent
from eventcatalog.scrapers.platforms import PlatformConfig

logger = structlog.get_logger(__name__)


MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# "FRI 19 DEC 2025 12:00 PM"
_DAY_DATE_PATTERN = re.compile(
    r"(\d{1,2})\s+([A-Z]{3})\s+(\d{4})\s+(\d{1,2}):(\d{2})\s*(AM|PM)?", re.IGNORECASE
)
# "Fri 19 Dec 25 4:00 PM"
_SHORT_YEAR_PATTERN = re.compile(
    r"(\d{1,2})\s+([A-Za-z]{3})\s+(\d{2})\s+(\d{1,2}):(\d{2})\s*(AM|PM)?", re.IGNORECASE
)
_PRICE_PREFIX_PATTERN = re.compile(
    r"^(starting(\s+(at|from))?|starts?\s+(at|from)|from)\b[\s:]*", re.IGNORECASE
)
_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]")
# ISO 4217 code ("USD"), a common symbol, or the Kenyan shorthand
_CURRENCY_MARKER_PATTERN = re.compile(r"\b[A-Z]{3}\b|[$€£¥₹₦]|\b(?i:ksh|kes)\b")

TITLE_MAX_LENGTH = 255


# ---------------------------------------------------------------------------
# Date parsing
# ---------------------------------------------------------------------------


def _to_24h(hour: int, ampm: Optional[str]) -> int:
    if ampm:
        ampm = ampm.upper()
        if ampm == "PM" and hour < 12:
            return hour + 12
        if ampm == "AM" and hour == 12:
            return 0
    return hour


def _from_match(match: Optional[re.Match], year_offset: int = 0) -> Optional[datetime]:
    if not match:
        return None
    day, month, year, hours, mins, ampm = match.groups()
    month_number = MONTHS.get(month.lower())
    if not month_number:
        return None
    return datetime(
        int(year) + year_offset,
        month_number,
        int(day),
        _to_24h(int(hours), ampm),
        int(mins),
    )


def _parse_iso(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value.strip())


def _parse_day_date_format(value: str) -> Optional[datetime]:
    return _from_match(_DAY_DATE_PATTERN.search(value))


def _parse_short_year_format(value: str) -> Optional[datetime]:
    # Two-digit years are always 20xx
    return _from_match(_SHORT_YEAR_PATTERN.search(value), year_offset=2000)


def _parse_free_text(value: str, now: datetime) -> Optional[datetime]:
    # Parse against two defaults that differ in day, month and year; a
    # fragment missing any of them fills it from the default and the
    # two results disagree.
    first = date_parser.parse(value, default=datetime(now.year, 1, 1))
    second = date_parser.parse(value, default=datetime(now.year + 1, 2, 2))
    if first != second:
        return None
    return first


def parse_event_date(
    date_str: Optional[str],
    time_str: Optional[str] = None,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
    past_years: Optional[int] = None,
    future_years: Optional[int] = None,
) -> Optional[datetime]:
    """Parse a scraped date (and optional time) into an aware UTC datetime.

    Parsers are tried in order: ISO-8601, "WEEKDAY DD MON YYYY HH:MM AM/PM",
    "Weekday DD Mon YY HH:MM AM/PM", then free text. The first result that
    falls inside the sanity window wins. Naive results are interpreted in
    the scrape timezone.

    Args:
        date_str: Raw date text
        time_str: Raw time text, combined with the date when present
        now: Reference time for the sanity window (default: current UTC time)
        tz_name: Zone for naive results (default: settings.SCRAPE_TIMEZONE)
        past_years: How far back a date may be (default: settings)
        future_years: How far ahead a date may be (default: settings)

    Returns:
        Parsed datetime in UTC, or None if unknown
    """
    if not date_str or not date_str.strip():
        return None

    now = now or datetime.now(timezone.utc)
    tz = ZoneInfo(tz_name or settings.SCRAPE_TIMEZONE)
    earliest = now - relativedelta(years=past_years if past_years is not None else settings.DATE_WINDOW_PAST_YEARS)
    latest = now + relativedelta(years=future_years if future_years is not None else settings.DATE_WINDOW_FUTURE_YEARS)

    combined = f"{date_str.strip()} {time_str.strip()}" if time_str and time_str.strip() else date_str.strip()

    attempts: List[tuple[Callable[[str], Optional[datetime]], str]] = [
        (_parse_iso, combined),
        (_parse_day_date_format, combined),
        (_parse_short_year_format, combined),
        (partial(_parse_free_text, now=now), combined),
        (partial(_parse_free_text, now=now), date_str),
    ]

    for parser_fn, value in attempts:
        try:
            parsed = parser_fn(value)
        except (ValueError, OverflowError):
            continue
        if parsed is None:
            continue

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        parsed = parsed.astimezone(timezone.utc)

        if earliest < parsed < latest:
            return parsed

    logger.warning("event_date_unparseable", raw_date=combined)
    return None


# ---------------------------------------------------------------------------
# Fingerprinting
# ---------------------------------------------------------------------------


def _platform_key(platform_id) -> str:
    return getattr(platform_id, "value", platform_id)


def generate_external_id(event: RawExtractedEvent, platform_id) -> str:
    """Build the deterministic per-platform fingerprint for an event.

    Uses the ticket URL when present (most unique), otherwise the title
    and the raw date string.

    Args:
        event: Raw extracted event
        platform_id: PlatformId or its string value

    Returns:
        16 hex characters of a SHA-256 digest
    """
    platform = _platform_key(platform_id)
    if event.ticket_url and event.ticket_url.strip():
        identifier = f"{platform}:{event.ticket_url.strip()}"
    else:
        identifier = f"{platform}:{(event.title or '').strip()}:{event.date or ''}"
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Field cleanup
# ---------------------------------------------------------------------------


def validate_image_url(url: Optional[str]) -> Optional[str]:
    """Return the URL if it is a well-formed http(s) URL, else None."""
    if not url or not url.strip():
        return None
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return url


def normalize_price_range(price: Optional[str], currency: Optional[str] = None) -> Optional[str]:
    """Standardize a scraped price string.

    Examples:
        "Starting KES 1,500" -> "KES 1,500"
        "Starts at 1,000"    -> "KES 1,000"
        "FREE"               -> "FREE"

    Args:
        price: Raw price text
        currency: Prefix for bare numeric prices (default: settings.LOCAL_CURRENCY)

    Returns:
        Normalized price string, or None when empty
    """
    if not price:
        return None

    currency = currency or settings.LOCAL_CURRENCY
    normalized = _PRICE_PREFIX_PATTERN.sub("", price.strip()).strip()

    has_currency = bool(_CURRENCY_MARKER_PATTERN.search(normalized)) or currency.lower() in normalized.lower()
    if normalized[:1].isdigit() and not has_currency:
        normalized = f"{currency} {normalized}"

    return normalized or None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_event(
    event: RawExtractedEvent,
    platform: PlatformConfig,
    now: Optional[datetime] = None,
) -> Optional[NormalizedEvent]:
    """Normalize a raw extracted event into a catalog row.

    Events without a title are dropped (logged, not an error).

    Args:
        event: Raw extracted event
        platform: Platform the event came from
        now: Reference time for date sanity checks

    Returns:
        NormalizedEvent, or None if the event should be skipped
    """
    title = _clean(event.title)
    if not title:
        logger.info("event_skipped_no_title", platform=platform.id.value)
        return None

    return NormalizedEvent(
        title=title[:TITLE_MAX_LENGTH],
        description=_clean(event.description),
        image_url=validate_image_url(event.image_url),
        starts_at=parse_event_date(event.date, event.time, now=now),
        venue_name=_clean(event.venue),
        organizer_name=_clean(event.organizer),
        price_range=normalize_price_range(event.price),
        source_platform=platform.id.value,
        source_url=_clean(event.ticket_url) or platform.events_url,
        external_id=generate_external_id(event, platform.id),
    )


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def _normalize_title(title: str) -> str:
    # "&" and "and" are interchangeable across sites
    return _NON_ALNUM_PATTERN.sub("", title.lower().replace("&", " and "))


def _trigrams(value: str) -> Set[str]:
    return {value[i:i + 3] for i in range(len(value) - 2)}


def calculate_title_similarity(title1: str, title2: str) -> float:
    """Jaccard similarity over character trigrams of normalized titles.

    Titles are lower-cased and stripped of non-alphanumerics first, so
    punctuation and whitespace drift between sites does not matter.

    Returns:
        1.0 for identical normalized titles, 0.0 when either is empty,
        otherwise |A∩B| / |A∪B| of the trigram sets
    """
    a = _normalize_title(title1 or "")
    b = _normalize_title(title2 or "")

    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    trigrams_a = _trigrams(a)
    trigrams_b = _trigrams(b)
    union = trigrams_a | trigrams_b
    if not union:
        return 0.0
    return len(trigrams_a & trigrams_b) / len(union)
