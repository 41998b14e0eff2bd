"""Tests for the markdown listing parser."""

from eventcatalog.scrapers.utils.markdown_parser import parse_listing_markdown

BASE_URL = "https://ticketsasa.com"

LISTING = """# Upcoming Events

Browse all events below.

SUN 21 DEC 2025 11:00 AM
[Nairobi Jazz Festival](/events/nairobi-jazz "Nairobi Jazz Festival")
Carnivore Grounds Starting KES 1,500
![Jazz poster](https://cdn.ticketsasa.com/jazz.jpg)

SAT 27 DEC 2025 6:00 PM
[Comedy Night](https://ticketsasa.com/events/comedy "Comedy Night")
FREE
![Comedy poster](/img/comedy.png)

MON 29 DEC 2025 8:00 PM
Details coming soon
"""


class TestParseListingMarkdown:
    """Splitting a listing page into event cards."""

    def test_parses_every_titled_card(self):
        events = parse_listing_markdown(LISTING, BASE_URL)
        assert [e.title for e in events] == ["Nairobi Jazz Festival", "Comedy Night"]

    def test_card_fields(self):
        jazz = parse_listing_markdown(LISTING, BASE_URL)[0]

        assert jazz.date == "SUN 21 DEC 2025"
        assert jazz.time == "11:00 AM"
        assert jazz.venue == "Carnivore Grounds"
        assert jazz.price == "Starting KES 1,500"
        assert jazz.image_url == "https://cdn.ticketsasa.com/jazz.jpg"

    def test_relative_urls_are_absolutized(self):
        jazz, comedy = parse_listing_markdown(LISTING, BASE_URL)

        assert jazz.ticket_url == "https://ticketsasa.com/events/nairobi-jazz"
        assert comedy.ticket_url == "https://ticketsasa.com/events/comedy"
        assert comedy.image_url == "https://ticketsasa.com/img/comedy.png"

    def test_price_word_is_not_a_venue(self):
        comedy = parse_listing_markdown(LISTING, BASE_URL)[1]

        assert comedy.venue is None
        assert comedy.price == "FREE"

    def test_card_without_link_is_skipped(self):
        events = parse_listing_markdown(LISTING, BASE_URL)
        assert all(e.date != "MON 29 DEC 2025" for e in events)

    def test_empty_document(self):
        assert parse_listing_markdown("", BASE_URL) == []

    def test_document_without_stamps(self):
        markdown = '[Some Event](/events/x "Some Event")\nVenue'
        assert parse_listing_markdown(markdown, BASE_URL) == []
