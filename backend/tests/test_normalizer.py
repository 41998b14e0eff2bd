"""Tests for event normalization: dates, prices, fingerprints, similarity."""

from datetime import datetime, timezone

import pytest

from eventcatalog.scrapers.base import NormalizedEvent, RawExtractedEvent
from eventcatalog.scrapers.platforms import PLATFORM_CONFIGS, PlatformId
from eventcatalog.scrapers.utils.normalizer import (
    calculate_title_similarity,
    generate_external_id,
    normalize_event,
    normalize_price_range,
    parse_event_date,
    validate_image_url,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
NAIROBI = "Africa/Nairobi"


class TestParseEventDate:
    """Date parsing across the formats seen on the platforms."""

    def test_weekday_day_month_year_format(self):
        """'FRI 19 DEC 2025 12:00 PM' is read in Nairobi time and stored in UTC."""
        parsed = parse_event_date("FRI 19 DEC 2025 12:00 PM", now=NOW, tz_name=NAIROBI)
        assert parsed == datetime(2025, 12, 19, 9, 0, tzinfo=timezone.utc)

    def test_short_year_format(self):
        """Two-digit years are taken as 20xx."""
        parsed = parse_event_date("Fri 19 Dec 25 4:00 PM", now=NOW, tz_name=NAIROBI)
        assert parsed == datetime(2025, 12, 19, 13, 0, tzinfo=timezone.utc)

    def test_midnight_and_noon(self):
        """12 AM is hour 0 and 12 PM is hour 12."""
        midnight = parse_event_date("SAT 20 DEC 2025 12:30 AM", now=NOW, tz_name="UTC")
        noon = parse_event_date("SAT 20 DEC 2025 12:30 PM", now=NOW, tz_name="UTC")
        assert midnight == datetime(2025, 12, 20, 0, 30, tzinfo=timezone.utc)
        assert noon == datetime(2025, 12, 20, 12, 30, tzinfo=timezone.utc)

    def test_iso_date_with_separate_time(self):
        """Date and time fields are combined before parsing."""
        parsed = parse_event_date("2025-12-19", "18:00", now=NOW, tz_name=NAIROBI)
        assert parsed == datetime(2025, 12, 19, 15, 0, tzinfo=timezone.utc)

    def test_iso_with_offset_keeps_offset(self):
        """Aware inputs are converted, not re-localized."""
        parsed = parse_event_date("2025-12-19T18:00:00+00:00", now=NOW, tz_name=NAIROBI)
        assert parsed == datetime(2025, 12, 19, 18, 0, tzinfo=timezone.utc)

    def test_free_text_date(self):
        """Anything else goes through the free-text parser."""
        parsed = parse_event_date("Dec 19, 2025", "7:00 PM", now=NOW, tz_name=NAIROBI)
        assert parsed == datetime(2025, 12, 19, 16, 0, tzinfo=timezone.utc)

    def test_result_is_utc(self):
        parsed = parse_event_date("2025-08-01 10:00", now=NOW, tz_name=NAIROBI)
        assert parsed.tzinfo is not None
        assert parsed.utcoffset().total_seconds() == 0

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", "TBA"])
    def test_unparseable_returns_none(self, value):
        assert parse_event_date(value, now=NOW) is None

    def test_rejects_dates_too_far_in_future(self):
        """Dates more than two years ahead are treated as garbage."""
        assert parse_event_date("2030-01-01", now=NOW, tz_name=NAIROBI) is None

    def test_rejects_dates_too_far_in_past(self):
        """Dates more than a year back are treated as garbage."""
        assert parse_event_date("2023-01-01", now=NOW, tz_name=NAIROBI) is None

    def test_recent_past_is_accepted(self):
        assert parse_event_date("2025-01-15", now=NOW, tz_name=NAIROBI) is not None

    @pytest.mark.parametrize("value", ["10", "2025", "December", "Sat 7pm", "Dec 19"])
    def test_date_fragments_are_not_guessed(self, value):
        """Text missing a day, month or year yields None rather than a guess."""
        assert parse_event_date(value, now=NOW, tz_name=NAIROBI) is None

    @pytest.mark.parametrize("value", ["31 Dec 1999", "01 Jan 2099"])
    def test_syntactically_valid_but_implausible(self, value):
        assert parse_event_date(value, now=NOW, tz_name=NAIROBI) is None


class TestGenerateExternalId:
    """Deterministic per-platform fingerprints."""

    def test_uses_ticket_url_when_present(self):
        a = RawExtractedEvent(title="Jazz Night", ticket_url="https://x.com/e/1", date="Fri")
        b = RawExtractedEvent(title="Jazz Night (updated)", ticket_url="https://x.com/e/1", date="Sat")
        assert generate_external_id(a, PlatformId.HUSTLE) == generate_external_id(b, PlatformId.HUSTLE)

    def test_falls_back_to_title_and_date(self):
        a = RawExtractedEvent(title="Jazz Night", date="FRI 19 DEC 2025")
        b = RawExtractedEvent(title="  Jazz Night  ", date="FRI 19 DEC 2025")
        c = RawExtractedEvent(title="Jazz Night", date="SAT 20 DEC 2025")
        assert generate_external_id(a, "hustle") == generate_external_id(b, "hustle")
        assert generate_external_id(a, "hustle") != generate_external_id(c, "hustle")

    def test_description_does_not_affect_id(self):
        a = RawExtractedEvent(title="Jazz Night", date="Fri", description="Old blurb")
        b = RawExtractedEvent(title="Jazz Night", date="Fri", description="New blurb")
        assert generate_external_id(a, "hustle") == generate_external_id(b, "hustle")

    def test_platform_scoped(self):
        event = RawExtractedEvent(title="Jazz Night", ticket_url="https://x.com/e/1")
        assert generate_external_id(event, "hustle") != generate_external_id(event, "madfun")

    def test_enum_and_string_ids_agree(self):
        event = RawExtractedEvent(title="Jazz Night")
        assert generate_external_id(event, PlatformId.MADFUN) == generate_external_id(event, "madfun")

    def test_is_sixteen_hex_characters(self):
        external_id = generate_external_id(RawExtractedEvent(title="Jazz Night"), "hustle")
        assert len(external_id) == 16
        int(external_id, 16)


class TestFieldCleanup:
    """Price and image URL normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Starting KES 1,500", "KES 1,500"),
            ("Starts at 1,000", "KES 1,000"),
            ("starting from 2000", "KES 2000"),
            ("From 500", "KES 500"),
            ("1500", "KES 1500"),
            ("FREE", "FREE"),
            ("Ksh 200", "Ksh 200"),
            ("KES 3,000 - 5,000", "KES 3,000 - 5,000"),
            ("1500 USD", "1500 USD"),
            ("20 €", "20 €"),
            ("1,500 ksh", "1,500 ksh"),
        ],
    )
    def test_normalize_price_range(self, raw, expected):
        assert normalize_price_range(raw, currency="KES") == expected

    def test_price_currency_override(self):
        assert normalize_price_range("25", currency="USD") == "USD 25"

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty_price(self, raw):
        assert normalize_price_range(raw) is None

    def test_valid_image_url(self):
        assert validate_image_url(" https://cdn.example.com/a.jpg ") == "https://cdn.example.com/a.jpg"

    @pytest.mark.parametrize("raw", [None, "", "not a url", "ftp://cdn.example.com/a.jpg", "/img/a.jpg"])
    def test_invalid_image_url(self, raw):
        assert validate_image_url(raw) is None


class TestNormalizeEvent:
    """Raw record to catalog row."""

    platform = PLATFORM_CONFIGS[PlatformId.MADFUN]

    def test_full_record(self):
        raw = RawExtractedEvent(
            title="  Sauti Sol Live  ",
            description="An evening of music",
            image_url="https://cdn.madfun.com/sauti.jpg",
            date="2025-12-19",
            time="18:00",
            venue=" KICC ",
            organizer="Madfun",
            price="Starting KES 2,500",
            ticket_url="https://gigs.madfun.com/events/sauti",
        )

        event = normalize_event(raw, self.platform, now=NOW)

        assert event.title == "Sauti Sol Live"
        assert event.venue_name == "KICC"
        assert event.price_range == "KES 2,500"
        assert event.source_platform == "madfun"
        assert event.source_url == "https://gigs.madfun.com/events/sauti"
        assert event.starts_at == datetime(2025, 12, 19, 15, 0, tzinfo=timezone.utc)
        assert event.is_external is True
        assert event.ticketing_type == "external"
        assert event.source == "scraper"
        assert event.status == "live"

    def test_missing_title_is_skipped(self):
        assert normalize_event(RawExtractedEvent(title="   "), self.platform) is None
        assert normalize_event(RawExtractedEvent(), self.platform) is None

    def test_source_url_falls_back_to_listing_page(self):
        event = normalize_event(RawExtractedEvent(title="Jazz Night"), self.platform)
        assert event.source_url == self.platform.events_url

    def test_long_title_is_truncated(self):
        event = normalize_event(RawExtractedEvent(title="x" * 300), self.platform)
        assert len(event.title) == 255

    def test_unparseable_date_keeps_event(self):
        event = normalize_event(RawExtractedEvent(title="Jazz Night", date="TBA"), self.platform)
        assert event is not None
        assert event.starts_at is None

    def test_normalized_event_requires_title(self):
        with pytest.raises(ValueError):
            NormalizedEvent(title="", source_platform="madfun", source_url="https://x", external_id="abc")

    def test_normalized_event_requires_external_id(self):
        with pytest.raises(ValueError):
            NormalizedEvent(title="Jazz", source_platform="madfun", source_url="https://x", external_id="")


class TestTitleSimilarity:
    """Trigram Jaccard similarity over normalized titles."""

    def test_identical_titles(self):
        assert calculate_title_similarity("Jazz Night", "Jazz Night") == 1.0

    def test_ampersand_and_punctuation_drift(self):
        """The same event listed with '&' on one site and 'and' on another."""
        similarity = calculate_title_similarity("Blankets & Wine Nairobi", "Blankets and Wine - Nairobi")
        assert similarity >= 0.85

    def test_case_and_whitespace_ignored(self):
        assert calculate_title_similarity("SAUTI SOL LIVE", "sauti sol  live!") == 1.0

    def test_unrelated_titles(self):
        assert calculate_title_similarity("Jazz Night", "Comedy Show") < 0.2

    def test_symmetric(self):
        a, b = "Koroga Festival 2025", "Koroga Festival"
        assert calculate_title_similarity(a, b) == calculate_title_similarity(b, a)

    def test_bounded(self):
        similarity = calculate_title_similarity("Koroga Festival 2025", "Koroga Festival")
        assert 0.0 < similarity < 1.0

    @pytest.mark.parametrize("a, b", [("", ""), ("", "Jazz"), ("!!!", "???")])
    def test_empty_titles_score_zero(self, a, b):
        assert calculate_title_similarity(a, b) == 0.0
